"""Repository discovery and prompt context."""

from ficli.repo.context import RepoContext, build_repo_context
from ficli.repo.denylist import is_denylisted
from ficli.repo.root import find_repo_root

__all__ = [
    "RepoContext",
    "build_repo_context",
    "find_repo_root",
    "is_denylisted",
]
