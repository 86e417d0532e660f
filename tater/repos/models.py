"""Shared data models for repository references."""

from dataclasses import dataclass, field

UNNAMED_PROJECT = "unnamed_project"


@dataclass
class RepoRef:
    """A cloneable repository location plus per-repository overrides."""
    url: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    setup: str | None = None
    teardown: str | None = None

    @property
    def name(self) -> str:
        """Final path segment with a trailing ``.git`` removed.

        Handles URLs, scp-style ``host:org/repo.git`` references and local
        paths. Trailing slashes are ignored.
        """
        return repo_name(self.url)


def repo_name(url: str) -> str:
    """Derive the project directory name from a repository reference."""
    path = url.strip().rstrip("/")
    # Drop query strings and fragments from URLs
    for sep in ("?", "#"):
        path = path.split(sep, 1)[0]
    segment = path.replace("\\", "/").rsplit("/", 1)[-1]
    # scp-style references without a slash: host:repo.git
    if ":" in segment and "/" not in path.split(":", 1)[-1]:
        segment = segment.rsplit(":", 1)[-1]
    if segment.endswith(".git"):
        segment = segment[: -len(".git")]
    # "." and ".." would point the clone at projects/ or the output root
    if segment in ("", ".", ".."):
        return UNNAMED_PROJECT
    return segment
