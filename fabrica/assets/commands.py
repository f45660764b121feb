"""External command stages.

Commands receive the artifact content on stdin. The command template may
reference ``{path}`` (artifact path) and ``{name}`` (file name); the same
values are exported as environment variables.

Example:
    CommandStage("uglifyjs --compress", name='minify')
    CommandLinter("jshint --reporter=unix --filename {path} -")
"""

import os
import subprocess
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from ..exceptions import ExternalProcessFailure
from ..logging import get_logger
from .stages import Artifact, LintFinding, MinifyStage, TransformStage

logger = get_logger('commands')

# Shell exit status for "command not found"
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Captured output of an external command."""
    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def __bool__(self) -> bool:
        return self.success


def run_command(template: str, stdin: Optional[str] = None,
                variables: Optional[Dict[str, str]] = None) -> CommandResult:
    """Run a shell command with variable injection.

    Variables are injected as format substitutions and environment
    variables.

    Raises:
        KeyError: If the template references an unknown variable
    """
    subs = dict(variables or {})
    try:
        cmd = template.format(**subs)
    except KeyError as e:
        available = ', '.join(sorted(subs)) or 'none'
        raise KeyError(
            f"Unknown variable {e} in command template. Available variables: {available}"
        )

    env = os.environ.copy()
    for key, value in subs.items():
        env[key] = str(value)

    logger.debug("running: %s", cmd)
    result = subprocess.run(
        cmd,
        shell=True,
        env=env,
        input=stdin,
        capture_output=True,
        text=True,
    )
    return CommandResult(cmd, result.returncode, result.stdout, result.stderr)


def _artifact_variables(artifact: Artifact) -> Dict[str, str]:
    return {'path': artifact.path, 'name': artifact.name}


def command_transform(template: str):
    """Build a text transform function that pipes through a command."""

    def transform(text: str, path: str = '', name: str = '') -> str:
        result = run_command(template, stdin=text, variables={'path': path, 'name': name})
        if not result:
            raise ExternalProcessFailure(result.command, result.returncode, result.stderr)
        return result.stdout

    return transform


class CommandStage(TransformStage):
    """Pipe each artifact through an external command."""

    def __init__(self, template: str, name: str = 'command'):
        super().__init__(command_transform(template), name=name)
        self.template = template

    def options_for(self, artifact):
        return _artifact_variables(artifact)


class CommandMinifyStage(MinifyStage):
    """Minify through an external command."""

    def __init__(self, template: str, suffix: str = '.min'):
        super().__init__(command_transform(template), suffix=suffix)
        self.template = template

    def options_for(self, artifact):
        return _artifact_variables(artifact)


class CommandLinter:
    """Lint through an external command.

    Every non-empty output line becomes a finding. A nonzero exit is the
    usual way linters report problems and is not an error, except for
    "command not found" which raises ExternalProcessFailure.
    """

    def __init__(self, template: str):
        self.template = template

    def __call__(self, artifact: Artifact) -> Iterator[LintFinding]:
        result = run_command(self.template, stdin=artifact.text,
                             variables=_artifact_variables(artifact))
        if result.returncode == COMMAND_NOT_FOUND:
            raise ExternalProcessFailure(result.command, result.returncode, result.stderr)
        for line in (result.stdout + result.stderr).splitlines():
            if line.strip():
                yield LintFinding(artifact.path, line.strip(), rule='external')

    def __repr__(self) -> str:
        return f"CommandLinter({self.template!r})"
