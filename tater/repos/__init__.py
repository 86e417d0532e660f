"""Repository references and clone management."""

from .models import RepoRef
from .inputs import load_repo_file, read_repo_refs
from .repo_manager import ClonedRepo, RepoManager

__all__ = ["RepoRef", "ClonedRepo", "RepoManager", "load_repo_file", "read_repo_refs"]
