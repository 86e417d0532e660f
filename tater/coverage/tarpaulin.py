"""Invocation of ``cargo tarpaulin`` inside a cloned project."""

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from ..errors import ConfigError, HookError, TarpaulinError
from ..repos.models import RepoRef
from .ci import CiCommand, detect_ci_command

logger = logging.getLogger(__name__)

COLOR_MODES = ("never", "auto", "always")
DEFAULT_RUST_LOG = "cargo_tarpaulin=info"


@dataclass
class TarpaulinOptions:
    """Settings shared by every tarpaulin run in a batch."""
    cargo: str = "cargo"
    toolchain: str | None = None
    debug: bool = True
    color: str | None = "never"
    all_features: bool = True
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    rust_log: str | None = DEFAULT_RUST_LOG
    timeout: float | None = None
    use_ci: bool = True

    def __post_init__(self):
        if self.color is not None and self.color not in COLOR_MODES:
            raise ConfigError(
                f"Invalid color mode {self.color!r}, expected one of {', '.join(COLOR_MODES)}"
            )
        if self.toolchain is not None:
            if not isinstance(self.toolchain, str):
                raise ConfigError(
                    f"Toolchain must be a string, got {self.toolchain!r} (quote versions like '1.70')"
                )
            self.toolchain = self.toolchain.strip() or None
        if self.timeout is not None and self.timeout < 0:
            raise ConfigError("Timeout must not be negative")

    @property
    def toolchain_selector(self) -> str | None:
        """The ``+toolchain`` argument, or None for the default toolchain."""
        if not self.toolchain:
            return None
        return self.toolchain if self.toolchain.startswith("+") else f"+{self.toolchain}"


@dataclass
class TarpaulinRun:
    """Result of a single tarpaulin invocation."""
    returncode: int | None
    duration: float
    timed_out: bool = False
    cwd: Path | None = None
    ci_source: str | None = None

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def build_command(
    options: TarpaulinOptions,
    ref: RepoRef | None = None,
    ci_args: list[str] | None = None,
) -> list[str]:
    """Build the cargo tarpaulin command line.

    Order: fixed flags, arguments derived from the project's CI, batch-wide
    arguments, then per-repository arguments.
    """
    cmd = [options.cargo]
    if options.toolchain_selector:
        cmd.append(options.toolchain_selector)
    cmd.append("tarpaulin")
    if options.debug:
        cmd.append("--debug")
    if options.color:
        cmd.extend(["--color", options.color])
    if options.all_features:
        cmd.append("--all-features")
    for arg in ci_args or []:
        # Flags tater already passes may only be given once
        if arg in ("--debug", "--all-features") and arg in cmd:
            continue
        cmd.append(arg)
    cmd.extend(options.args)
    if ref is not None:
        cmd.extend(ref.args)
    return cmd


def build_env(
    options: TarpaulinOptions,
    ref: RepoRef | None = None,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Environment for the child process.

    ``RUST_LOG`` comes from the options rather than this process's
    environment; batch-wide then per-repository variables override it.
    """
    env = dict(os.environ if base is None else base)
    if options.rust_log:
        env["RUST_LOG"] = options.rust_log
    env.update(options.env)
    if ref is not None:
        env.update(ref.env)
    return env


def run_tarpaulin(
    options: TarpaulinOptions,
    ref: RepoRef,
    cwd: Path,
    log_path: Path,
) -> TarpaulinRun:
    """Run tarpaulin in ``cwd`` writing stdout and stderr to ``log_path``.

    When the project's CI runs its tests from a subdirectory, tarpaulin runs
    there too; ``TarpaulinRun.cwd`` records where.
    """
    ci = detect_ci_command(cwd) if options.use_ci else None
    run_dir = _run_directory(cwd, ci)
    cmd = build_command(options, ref, ci.args if ci else None)
    ci_source = ci.source if ci else None
    logger.debug("Running %s in %s", " ".join(cmd), run_dir)

    start = time.monotonic()
    with open(log_path, "wb") as log:
        try:
            result = subprocess.run(
                cmd,
                cwd=run_dir,
                env=build_env(options, ref),
                stdout=log,
                stderr=subprocess.STDOUT,
                timeout=options.timeout,
            )
        except subprocess.TimeoutExpired:
            log.write(f"\ntater: killed after {options.timeout}s\n".encode())
            return TarpaulinRun(
                returncode=None,
                duration=time.monotonic() - start,
                timed_out=True,
                cwd=run_dir,
                ci_source=ci_source,
            )
        except OSError as e:
            log.write(f"tater: failed to run {options.cargo}: {e}\n".encode())
            raise TarpaulinError(f"Failed to run {options.cargo}: {e}") from e

    return TarpaulinRun(
        returncode=result.returncode,
        duration=time.monotonic() - start,
        cwd=run_dir,
        ci_source=ci_source,
    )


def _run_directory(project: Path, ci: CiCommand | None) -> Path:
    """The CI working directory if it is inside the project, else the project."""
    if ci is None or not ci.working_directory:
        return project
    root = Path(project).resolve()
    candidate = (root / ci.working_directory).resolve()
    if candidate.is_dir() and (candidate == root or root in candidate.parents):
        return candidate
    logger.warning(
        "Ignoring working directory %s from %s", ci.working_directory, ci.source
    )
    return project


def run_hook(command: str, cwd: Path, timeout: float | None = None) -> None:
    """Run a setup or teardown shell command inside the project."""
    try:
        result = subprocess.run(
            ["sh", "-c", command],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise HookError(f"{command!r} timed out") from e
    except OSError as e:
        raise HookError(f"Unable to run {command!r}: {e}") from e

    if result.returncode != 0:
        raise HookError(
            f"{command!r} exited with {result.returncode}: {result.stderr.strip()}"
        )
