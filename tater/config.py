"""Configuration loading."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .coverage.tarpaulin import DEFAULT_RUST_LOG, TarpaulinOptions
from .errors import ConfigError
from .repos.repo_manager import RepoManager


def _string(data: dict, key: str, default, prefix: str = ""):
    """A string setting. YAML turns unquoted versions such as 1.70 into floats."""
    value = data.get(key, default)
    if value is not None and not isinstance(value, (str, Path)):
        raise ConfigError(
            f"'{prefix}{key}' must be a string, got {value!r} (quote versions like '1.70')"
        )
    return value


def _timeout(data: dict, key: str, default, prefix: str = "") -> float | None:
    """A timeout in seconds, or None for no limit."""
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"'{prefix}{key}' must be a number of seconds")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{prefix}{key}' must be a number of seconds, got {value!r}") from e
    if seconds < 0:
        raise ConfigError(f"'{prefix}{key}' must not be negative")
    return seconds


@dataclass
class TaterConfig:
    """Settings for a batch run.

    Mirrors the YAML layout::

        output: ./output
        toolchain: "1.70"   # quote pinned versions, YAML reads 1.70 as a number
        rust_log: cargo_tarpaulin=info
        env: {}
        clone:
          depth: 1
          recurse_submodules: true
          timeout: 300
        tarpaulin:
          debug: true
          color: never
          all_features: true
          args: []
          timeout: 3600
          ci: true          # take cargo test flags from GitHub/GitLab CI
        hook_timeout: 600
    """
    output: Path = Path(".")
    git: str = "git"
    cargo: str = "cargo"
    toolchain: str | None = None
    rust_log: str | None = DEFAULT_RUST_LOG
    log_level: str = "INFO"
    env: dict[str, str] = field(default_factory=dict)
    clone_depth: int = 1
    recurse_submodules: bool = True
    clone_timeout: float | None = 300
    debug: bool = True
    color: str | None = "never"
    all_features: bool = True
    args: list[str] = field(default_factory=list)
    timeout: float | None = None
    use_ci: bool = True
    hook_timeout: float | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "TaterConfig":
        """Build a config from the parsed YAML mapping."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")
        clone = data.get("clone") or {}
        tarpaulin = data.get("tarpaulin") or {}
        if not isinstance(clone, dict) or not isinstance(tarpaulin, dict):
            raise ConfigError("'clone' and 'tarpaulin' must be mappings")

        defaults = cls()
        env = data.get("env") or {}
        args = tarpaulin.get("args") or []
        if not isinstance(env, dict) or not isinstance(args, list):
            raise ConfigError("'env' must be a mapping and 'tarpaulin.args' a list")

        try:
            return cls(
                output=Path(_string(data, "output", defaults.output)),
                git=_string(data, "git", defaults.git),
                cargo=_string(data, "cargo", defaults.cargo),
                toolchain=_string(data, "toolchain", defaults.toolchain),
                rust_log=_string(data, "rust_log", defaults.rust_log),
                log_level=str(data.get("log_level", defaults.log_level)).upper(),
                env={str(k): str(v) for k, v in env.items()},
                clone_depth=int(clone.get("depth", defaults.clone_depth)),
                recurse_submodules=bool(
                    clone.get("recurse_submodules", defaults.recurse_submodules)
                ),
                clone_timeout=_timeout(clone, "timeout", defaults.clone_timeout, "clone."),
                debug=bool(tarpaulin.get("debug", defaults.debug)),
                color=_string(tarpaulin, "color", defaults.color, "tarpaulin."),
                all_features=bool(tarpaulin.get("all_features", defaults.all_features)),
                args=[str(a) for a in args],
                timeout=_timeout(tarpaulin, "timeout", defaults.timeout, "tarpaulin."),
                use_ci=bool(tarpaulin.get("ci", defaults.use_ci)),
                hook_timeout=_timeout(data, "hook_timeout", defaults.hook_timeout),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def __post_init__(self):
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigError(f"Unknown log level {self.log_level!r}")

    def apply_overrides(self, overrides: dict) -> None:
        """Merge top-level settings from a repos context file."""
        if overrides.get("toolchain") is not None:
            self.toolchain = _string(overrides, "toolchain", None)
        if overrides.get("args"):
            self.args = self.args + [str(a) for a in overrides["args"]]
        if overrides.get("env"):
            self.env = {**self.env, **{str(k): str(v) for k, v in overrides["env"].items()}}

    def tarpaulin_options(self) -> TarpaulinOptions:
        return TarpaulinOptions(
            cargo=self.cargo,
            toolchain=self.toolchain,
            debug=self.debug,
            color=self.color,
            all_features=self.all_features,
            args=list(self.args),
            env=dict(self.env),
            rust_log=self.rust_log,
            timeout=self.timeout,
            use_ci=self.use_ci,
        )

    def repo_manager(self, base_path: Path) -> RepoManager:
        return RepoManager(
            base_path=base_path,
            git=self.git,
            depth=self.clone_depth,
            recurse_submodules=self.recurse_submodules,
            timeout=self.clone_timeout,
        )


def load_config(config_path: Path | str) -> TaterConfig:
    """Load configuration from a YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Unable to parse {config_path}: {e}") from e
    return TaterConfig.from_dict(data)
