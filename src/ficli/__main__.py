"""Module entry point for ``python -m ficli``."""

from ficli.cli import main

if __name__ == "__main__":
    main()
