"""Repository cloning and cleanup."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .models import RepoRef

logger = logging.getLogger(__name__)


@dataclass
class ClonedRepo:
    """Information about a cloned repository."""
    ref: RepoRef
    local_path: Path
    success: bool
    error: str | None = None


class RepoManager:
    """Manages the working clones under the projects directory."""
    
    def __init__(
        self,
        base_path: Path | str,
        git: str = "git",
        depth: int = 1,
        recurse_submodules: bool = True,
        timeout: float | None = 300,
    ):
        self.base_path = Path(base_path)
        self.git = git
        self.depth = depth
        self.recurse_submodules = recurse_submodules
        self.timeout = timeout
        self.base_path.mkdir(parents=True, exist_ok=True)
    
    def get_repo_path(self, ref: RepoRef) -> Path:
        """Get local path for a repository."""
        return self.base_path / ref.name
    
    def is_contained(self, path: Path) -> bool:
        """True if ``path`` lies strictly inside the projects directory."""
        base = self.base_path.resolve()
        resolved = Path(path).resolve()
        return resolved != base and base in resolved.parents
    
    def clone_command(self, ref: RepoRef) -> list[str]:
        """Build the git clone command line."""
        cmd = [self.git, "clone"]
        if self.recurse_submodules:
            cmd.append("--recurse-submodules")
        if self.depth > 0:
            cmd.extend(["--depth", str(self.depth)])
        cmd.extend([ref.url, str(self.get_repo_path(ref))])
        return cmd
    
    def clone_repo(self, ref: RepoRef) -> ClonedRepo:
        """Clone a single repository."""
        local_path = self.get_repo_path(ref)
        if not self.is_contained(local_path):
            return ClonedRepo(
                ref=ref,
                local_path=local_path,
                success=False,
                error=f"Refusing to clone outside {self.base_path}: {local_path}",
            )
        
        # Left behind by an interrupted run
        if local_path.exists() and (local_path / ".git").exists():
            logger.warning("%s already cloned, using existing version", ref.name)
            return ClonedRepo(ref=ref, local_path=local_path, success=True)
        
        # A partial clone would make git refuse the destination
        if local_path.exists():
            shutil.rmtree(local_path)
        
        try:
            result = subprocess.run(
                self.clone_command(ref),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return ClonedRepo(
                ref=ref,
                local_path=local_path,
                success=False,
                error="Clone timed out",
            )
        except OSError as e:
            return ClonedRepo(
                ref=ref,
                local_path=local_path,
                success=False,
                error=f"Git may not be installed: {e}",
            )
        
        if result.returncode != 0:
            logger.debug("git clone %s failed:\n%s", ref.url, result.stderr)
            return ClonedRepo(
                ref=ref,
                local_path=local_path,
                success=False,
                error=result.stderr.strip() or f"git exited with {result.returncode}",
            )
        
        logger.info("%s cloned successfully", ref.name)
        return ClonedRepo(ref=ref, local_path=local_path, success=True)
    
    def cleanup_repo(self, ref: RepoRef) -> bool:
        """Remove a cloned repository."""
        local_path = self.get_repo_path(ref)
        if not self.is_contained(local_path):
            logger.error("Refusing to remove %s, it is outside %s", local_path, self.base_path)
            return False
        
        if local_path.exists():
            shutil.rmtree(local_path)
            return True
        return False
