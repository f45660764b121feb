"""Source discovery with glob patterns.

Pattern syntax (relative to a root directory):
- * - any characters except '/'
- ? - a single character except '/'
- ** - any number of directories (``assets/**/*.js``)
- {a,b} - alternatives (``*.{css,pcss}``)

Wildcards never match names starting with a dot; dotfiles must be named
literally (``includes/.env``).

Example:
    for source in discover(Path('dev/src'), ['assets/js/**/*.js'], 'scripts'):
        print(source.relative)   # 'main.js', 'vendor/plugin.js', ...
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Pattern, Sequence

_WILDCARD_CHARS = ('*', '?', '[', '{')


@dataclass(frozen=True)
class SourceFile:
    """A discovered source file.

    Attributes:
        path: Absolute path of the file
        base: Static directory of the glob that found it; the
            destination-relative path is computed from it
        asset_class: Name of the asset class that owns the file
    """
    path: Path
    base: Path
    asset_class: str = ''

    @property
    def relative(self) -> str:
        """Path relative to the glob base, POSIX style."""
        return self.path.relative_to(self.base).as_posix()

    @property
    def is_top_level(self) -> bool:
        """True if the file sits directly in the glob base directory."""
        return '/' not in self.relative

    def read(self) -> bytes:
        return self.path.read_bytes()


def glob_base(pattern: str) -> str:
    """Extract the static directory prefix of a pattern.

    Examples:
        "assets/css/**/*.css" -> "assets/css"
        "includes/.env" -> "includes"
        "*.json" -> ""
    """
    parts = pattern.split('/')
    static = []
    for part in parts[:-1]:
        if any(c in part for c in _WILDCARD_CHARS):
            break
        static.append(part)
    return '/'.join(static)


def _split_alternatives(body: str) -> List[str]:
    """Split the inside of a {a,b} group on top-level commas."""
    alternatives = []
    depth = 0
    current = ''
    for c in body:
        if c == ',' and depth == 0:
            alternatives.append(current)
            current = ''
            continue
        if c == '{':
            depth += 1
        elif c == '}':
            depth -= 1
        current += c
    alternatives.append(current)
    return alternatives


def _translate(pattern: str) -> str:
    """Translate a glob pattern into a regex body (no anchors)."""
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        at_segment_start = i == 0 or pattern[i - 1] == '/'
        if pattern.startswith('**/', i) and at_segment_start:
            out.append(r'(?:(?!\.)[^/]+/)*')
            i += 3
        elif pattern.startswith('**', i) and at_segment_start:
            out.append(r'(?:(?!\.)[^/]+(?:/(?!\.)[^/]+)*)?')
            i += 2
        elif c == '*':
            out.append(r'(?!\.)[^/]*' if at_segment_start else r'[^/]*')
            i += 1
        elif c == '?':
            out.append(r'[^/]')
            i += 1
        elif c == '{':
            depth = 1
            j = i + 1
            while j < n and depth:
                if pattern[j] == '{':
                    depth += 1
                elif pattern[j] == '}':
                    depth -= 1
                j += 1
            if depth:
                out.append(re.escape(c))
                i += 1
                continue
            alternatives = _split_alternatives(pattern[i + 1:j - 1])
            out.append('(?:' + '|'.join(_translate(a) for a in alternatives) + ')')
            i = j
        else:
            out.append(re.escape(c))
            i += 1
    return ''.join(out)


def glob_to_regex(pattern: str) -> Pattern:
    """Compile a glob pattern into an anchored regex."""
    return re.compile('^' + _translate(pattern) + '$')


def matches(pattern: str, relative_path: str) -> bool:
    """Check a POSIX relative path against a glob pattern."""
    return glob_to_regex(pattern).match(relative_path) is not None


def _walk_files(directory: Path) -> Iterable[Path]:
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath) / name


def discover(root: Path, patterns: Sequence[str], asset_class: str = '') -> List[SourceFile]:
    """Expand glob patterns under root.

    Files are returned pattern by pattern, each pattern's matches sorted
    by path, so the order is reproducible for the same source tree.
    A file matched by more than one pattern is listed once, at its first
    position.

    Args:
        root: Directory the patterns are relative to
        patterns: Glob patterns
        asset_class: Asset class name stored on each SourceFile

    Returns:
        Discovered SourceFiles in enumeration order
    """
    root = Path(root).resolve()
    found: List[SourceFile] = []
    seen = set()

    for pattern in patterns:
        base_rel = glob_base(pattern)
        base = root / base_rel if base_rel else root
        regex = glob_to_regex(pattern)

        if not base.is_dir():
            continue

        matched = []
        for path in _walk_files(base):
            rel = path.relative_to(root).as_posix()
            if regex.match(rel):
                matched.append((rel, path))

        for rel, path in sorted(matched):
            if path in seen:
                continue
            seen.add(path)
            found.append(SourceFile(path=path, base=base, asset_class=asset_class))

    return found
