"""fi - terminal-native repository question answering."""

__version__ = "0.3.0"
