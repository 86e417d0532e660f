"""Deriving tarpaulin arguments from a project's CI configuration.

Projects usually encode how their tests must be run (features, release mode,
test filters) in CI. The first ``cargo test`` invocation found in GitHub
Actions workflows or ``.gitlab-ci.yml`` is turned into extra tarpaulin
arguments. Travis configs are not interpreted.
"""

import logging
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

# A `cargo test` call up to `;`, `&&` or an unescaped newline. Backslash
# continuations keep the command going onto the next line.
TEST_COMMAND = re.compile(
    r"cargo[ \t]+test(?:\\[ \t]*\n|[ \t]|[-a-zA-Z\d$\{\}.\"'~,=_/:+])*(?:;|&&|\n)?"
)
TEST_PREFIX = re.compile(r"^cargo[ \t]+test")
CONTINUATION = re.compile(r"\\[ \t]*\n")
GHA_EXPRESSION = re.compile(r"\$\{\{.*?\}\}")

# Workflow files whose names contain these are tried first, in this order
WORKFLOW_PRIORITY = ("coverage", "test", "ci", "rust")

GITLAB_RESERVED = {
    "image", "services", "stages", "variables", "include", "default",
    "workflow", "cache", "before_script", "after_script", "pages",
}


@dataclass
class CiCommand:
    """Test arguments found in a CI config."""
    source: str
    args: list[str] = field(default_factory=list)
    working_directory: str | None = None


def extract_tarpaulin_commands(text: str) -> list[str]:
    """All ``cargo test`` commands in a script, terminators included."""
    return [m.group(0) for m in TEST_COMMAND.finditer(text)]


def convert_arg_string(args: str) -> list[str]:
    """Split CI arguments into tarpaulin arguments.

    ``--color`` is dropped since tater sets it itself, as are unresolved
    ``${{ ... }}`` expressions and shell variables.
    """
    text = GHA_EXPRESSION.sub(" ", CONTINUATION.sub(" ", args))
    try:
        tokens = shlex.split(text)
    except ValueError:
        tokens = text.split()

    result = []
    skip_next = False
    for token in tokens:
        if skip_next:
            skip_next = False
            continue
        if token == "--color":
            skip_next = True
            continue
        if token.startswith("--color=") or token.startswith("$"):
            continue
        result.append(token)
    return result


def command_args(command: str) -> list[str]:
    """Arguments following ``cargo test`` in an extracted command."""
    body = TEST_PREFIX.sub("", command.strip(), count=1)
    return convert_arg_string(body.rstrip(";& \t\n"))


def _load_yaml(path: Path) -> dict | None:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.debug("Unable to read %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _tarpaulin_action_args(settings: dict) -> list[str]:
    """Translate the inputs of the actions-rs/tarpaulin action."""
    args = []
    for key, value in settings.items():
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            continue
        value = str(value)
        if key == "run-types":
            args.append("--run-types")
            args.extend(value.split())
        elif key == "timeout":
            args.extend(["--timeout", value])
        elif key == "out-type":
            args.extend(["--out", value])
        elif key == "args":
            args.extend(convert_arg_string(value))
        elif key == "version":
            logger.debug("Ignoring pinned tarpaulin version %s", value)
        else:
            logger.warning("Unexpected with field: %s", key)
    return args


def _uses(step: dict, action: str) -> bool:
    return str(step.get("uses") or "").startswith(action)


def read_workflow(root: Path, path: Path) -> CiCommand | None:
    """Find a test command in one GitHub Actions workflow."""
    logger.debug("Processing workflow: %s", path)
    data = _load_yaml(path)
    jobs = data.get("jobs") if data else None
    if not isinstance(jobs, dict):
        return None

    source = path.relative_to(root).as_posix()
    defaults = data.get("defaults")
    run_defaults = defaults.get("run") if isinstance(defaults, dict) else None
    working_dir = None
    if isinstance(run_defaults, dict) and isinstance(run_defaults.get("working-directory"), str):
        working_dir = run_defaults["working-directory"]

    for job in jobs.values():
        steps = job.get("steps") if isinstance(job, dict) else None
        if not isinstance(steps, list):
            continue
        steps = [s for s in steps if isinstance(s, dict)]

        tarpaulin = next((s for s in steps if _uses(s, "actions-rs/tarpaulin")), None)
        if tarpaulin is not None:
            settings = tarpaulin.get("with")
            args = _tarpaulin_action_args(settings if isinstance(settings, dict) else {})
            return CiCommand(source=source, args=args)

        for step in steps:
            settings = step.get("with")
            if _uses(step, "actions-rs/cargo") and isinstance(settings, dict):
                if settings.get("command") == "test":
                    args = settings.get("args")
                    return CiCommand(
                        source=source,
                        args=convert_arg_string(args) if isinstance(args, str) else [],
                        working_directory=working_dir,
                    )
            run = step.get("run")
            if isinstance(run, str) and "cargo test" in run:
                commands = extract_tarpaulin_commands(run)
                if commands:
                    step_dir = step.get("working-directory")
                    return CiCommand(
                        source=source,
                        args=command_args(commands[0]),
                        working_directory=step_dir if isinstance(step_dir, str) else working_dir,
                    )
    return None


def github_command(root: Path) -> CiCommand | None:
    """Search ``.github/workflows``, likely coverage/test workflows first."""
    workflows_dir = root / ".github" / "workflows"
    if not workflows_dir.is_dir():
        return None
    workflows = sorted(
        p for p in workflows_dir.iterdir()
        if p.is_file() and p.suffix in (".yml", ".yaml")
    )

    ordered = []
    for keyword in WORKFLOW_PRIORITY:
        ordered.extend(
            p for p in workflows if keyword in p.name.lower() and p not in ordered
        )
    ordered.extend(p for p in workflows if p not in ordered)

    for workflow in ordered:
        command = read_workflow(root, workflow)
        if command is not None:
            return command
    return None


def gitlab_command(root: Path) -> CiCommand | None:
    """Search the job scripts of ``.gitlab-ci.yml``."""
    path = root / ".gitlab-ci.yml"
    if not path.is_file():
        return None
    data = _load_yaml(path)
    if not data:
        return None

    for name, job in data.items():
        if name in GITLAB_RESERVED or not isinstance(job, dict):
            continue
        logger.debug("Scanning stage: %s", name)
        script = job.get("script")
        if isinstance(script, str):
            script = [script]
        if not isinstance(script, list):
            continue
        for line in script:
            if not isinstance(line, str):
                continue
            commands = extract_tarpaulin_commands(line)
            if commands:
                return CiCommand(source=".gitlab-ci.yml", args=command_args(commands[0]))
    return None


def detect_ci_command(root: Path) -> CiCommand | None:
    """Test arguments from the project's CI, or None to use the defaults."""
    for finder in (github_command, gitlab_command):
        command = finder(Path(root))
        if command is not None:
            logger.info("Using test flags from %s: %s", command.source, " ".join(command.args))
            return command
    return None
