"""Reading the list of repositories to process."""

import sys
from pathlib import Path
from typing import IO, Iterator

import yaml

from ..errors import InputError
from .models import RepoRef

CONTEXT_SUFFIXES = {".yaml", ".yml", ".json"}


def read_repo_refs(stream: IO[str]) -> Iterator[RepoRef]:
    """Yield one reference per non-empty line.

    Lines starting with ``#`` are treated as comments.
    """
    for line in stream:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        yield RepoRef(url=line)


def _parse_entry(entry, position: int) -> RepoRef:
    if isinstance(entry, str):
        return RepoRef(url=entry)
    if not isinstance(entry, dict) or "repository_url" not in entry:
        raise InputError(f"Entry {position} needs a repository_url")

    args = entry.get("args") or []
    env = entry.get("env") or {}
    if not isinstance(args, list) or not isinstance(env, dict):
        raise InputError(f"Entry {position}: args must be a list and env a mapping")

    for hook in ("setup", "teardown"):
        if entry.get(hook) is not None and not isinstance(entry[hook], str):
            raise InputError(f"Entry {position}: {hook} must be a shell command string")

    return RepoRef(
        url=str(entry["repository_url"]),
        args=[str(a) for a in args],
        env={str(k): str(v) for k, v in env.items()},
        setup=entry.get("setup"),
        teardown=entry.get("teardown"),
    )


def load_repo_file(path: Path | str) -> tuple[list[RepoRef], dict]:
    """Load a YAML/JSON context file.

    Returns the repositories and the top-level overrides (``toolchain``,
    ``args``, ``env``) that apply to every repository.
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise InputError(f"Unable to read {path}: {e}") from e

    if not isinstance(data, dict):
        raise InputError(f"{path} must contain a mapping with a 'crates' list")

    entries = data.get("crates", data.get("repos"))
    if not isinstance(entries, list):
        raise InputError(f"{path} must contain a 'crates' list")

    refs = [_parse_entry(entry, i) for i, entry in enumerate(entries)]
    toolchain = data.get("toolchain")
    if toolchain is not None and not isinstance(toolchain, str):
        raise InputError(
            f"{path}: toolchain must be a string, got {toolchain!r} (quote versions like '1.70')"
        )
    overrides = {
        key: data[key]
        for key in ("toolchain", "args", "env")
        if data.get(key) is not None
    }
    return refs, overrides


def load_input(source: str) -> tuple[list[RepoRef], dict]:
    """Resolve ``--input``: ``-`` is stdin, context files by suffix, else a line list."""
    if source == "-":
        return list(read_repo_refs(sys.stdin)), {}

    path = Path(source)
    if not path.is_file():
        raise InputError(f"No repos file at {path}")
    if path.suffix.lower() in CONTEXT_SUFFIXES:
        return load_repo_file(path)
    with path.open() as f:
        return list(read_repo_refs(f)), {}
