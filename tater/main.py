"""Main entry point for tater."""

import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .config import TaterConfig, load_config
from .errors import ConfigError, TaterError
from .repos.inputs import load_input
from .runner import BatchRunner
from .store.results import ResultsStore

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tater",
        description="Tater - clone repositories and run cargo tarpaulin on each",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to a YAML configuration file",
    )
    parser.add_argument(
        "--input", "-i",
        default="-",
        help="Repository list: a file with one URL per line, a YAML/JSON repos "
             "file, or - for stdin (default)",
    )
    parser.add_argument(
        "--output", "-o",
        help="Directory to hold the projects and results folders",
    )
    parser.add_argument(
        "--toolchain",
        help="Rust toolchain for cargo, e.g. nightly (default toolchain if omitted)",
    )
    parser.add_argument(
        "--color",
        choices=["never", "auto", "always"],
        help="Color mode passed to tarpaulin",
    )
    parser.add_argument(
        "--no-debug",
        action="store_true",
        help="Don't pass --debug to tarpaulin",
    )
    parser.add_argument(
        "--no-all-features",
        action="store_true",
        help="Don't pass --all-features to tarpaulin",
    )
    parser.add_argument(
        "--no-ci",
        action="store_true",
        help="Don't derive cargo test flags from the project's CI config",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Kill tarpaulin after this many seconds",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue a paused batch from the progress file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity for tater itself",
    )
    return parser


def build_config(args: argparse.Namespace) -> TaterConfig:
    """Load the config file, if any, and apply CLI overrides."""
    config = load_config(args.config) if args.config else TaterConfig()
    
    if args.output:
        config.output = Path(args.output)
    if args.toolchain is not None:
        config.toolchain = args.toolchain
    if args.color:
        config.color = args.color
    if args.no_debug:
        config.debug = False
    if args.no_all_features:
        config.all_features = False
    if args.no_ci:
        config.use_ci = False
    if args.timeout is not None:
        if args.timeout < 0:
            raise ConfigError("--timeout must not be negative")
        config.timeout = args.timeout
    if args.log_level:
        config.log_level = args.log_level
    return config


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    
    try:
        config = build_config(args)
        refs, overrides = load_input(args.input)
        config.apply_overrides(overrides)
        options = config.tarpaulin_options()
    except TaterError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    
    setup_logging(config.log_level)
    
    if config.output.is_file():
        console.print(f"[red]Error:[/red] Output directory is a file: {config.output}")
        return 1
    
    store = ResultsStore(config.output)
    store.prepare()
    runner = BatchRunner(
        store=store,
        options=options,
        repo_manager=config.repo_manager(store.projects_path),
        hook_timeout=config.hook_timeout,
    )
    
    console.print(f"Running with toolchain {options.toolchain_selector or 'default'}")
    summary = runner.run(refs, resume=args.resume)
    
    console.print(
        f"\n[bold]Tarpaulin passed on {summary.passed}/{len(summary.outcomes)} projects[/bold]"
    )
    console.print(f"Summary written to {store.summary_file}")
    return 130 if summary.interrupted else 0


if __name__ == "__main__":
    raise SystemExit(main())
