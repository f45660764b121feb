"""Default opaque transforms.

These are deliberately small stand-ins for the real preprocessors,
minifiers and linters; any of them can be replaced by an external
command through the ``tools`` settings (see fabrica.assets.commands).
"""

import re
from typing import Dict, Iterator, Optional

from .stages import Artifact, LintFinding

_VARIABLE_DECL = re.compile(r'^[ \t]*\$([A-Za-z_][\w-]*)[ \t]*:[ \t]*([^;\n]+);[ \t]*\n?', re.M)
_VARIABLE_REF = re.compile(r'\$([A-Za-z_][\w-]*)')
_CSS_COMMENT = re.compile(r'/\*(?!!).*?\*/', re.S)
_CSS_SPACE_AROUND = re.compile(r'\s*([{};:,>])\s*')


def substitute_variables(text: str, variables: Optional[Dict[str, str]] = None) -> str:
    """Expand ``$name`` stylesheet variables.

    Declarations (``$brand: #c00;``) are removed from the output and every
    later reference is replaced by its value. ``variables`` provides
    predefined values, overridden by declarations in the file.

    Raises:
        ValueError: On a reference to an undefined variable
    """
    values = dict(variables or {})

    def declare(m):
        values[m.group(1)] = m.group(2).strip()
        return ''

    body = _VARIABLE_DECL.sub(declare, text)

    def expand(m):
        name = m.group(1)
        if name not in values:
            raise ValueError(f"undefined variable ${name}")
        return values[name]

    return _VARIABLE_REF.sub(expand, body)


def compact_css(text: str) -> str:
    """Strip comments and redundant whitespace from a stylesheet.

    Comments starting with ``/*!`` are kept.
    """
    text = _CSS_COMMENT.sub('', text)
    text = re.sub(r'\s+', ' ', text)
    text = _CSS_SPACE_AROUND.sub(r'\1', text)
    text = text.replace(';}', '}')
    return text.strip()


def compact_js(text: str) -> str:
    """Drop blank lines, full-line ``//`` comments and indentation."""
    lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith('//') and not stripped.startswith('//#'):
            continue
        lines.append(stripped)
    return '\n'.join(lines)


def _common_findings(artifact: Artifact) -> Iterator[LintFinding]:
    for number, line in enumerate(artifact.text.splitlines(), start=1):
        if line != line.rstrip():
            yield LintFinding(artifact.path, 'trailing whitespace', number, 'trailing-space')
        indent = line[:len(line) - len(line.lstrip())]
        if ' ' in indent and '\t' in indent:
            yield LintFinding(artifact.path, 'mixed tabs and spaces', number, 'mixed-indent')


def lint_styles(artifact: Artifact) -> Iterator[LintFinding]:
    """Basic stylesheet checks."""
    yield from _common_findings(artifact)
    for number, line in enumerate(artifact.text.splitlines(), start=1):
        if '!important' in line:
            yield LintFinding(artifact.path, 'use of !important', number, 'important')
        if re.search(r'\{\s*\}', line):
            yield LintFinding(artifact.path, 'empty rule', number, 'empty-rules')


def lint_scripts(artifact: Artifact) -> Iterator[LintFinding]:
    """Basic script checks."""
    yield from _common_findings(artifact)
    for number, line in enumerate(artifact.text.splitlines(), start=1):
        if re.search(r'\bdebugger\b', line):
            yield LintFinding(artifact.path, "forgotten 'debugger' statement", number, 'debug')
