"""Transform stages for asset pipelines.

A stage takes the list of in-flight artifacts and returns a new list.
Stages never touch the destinations; the pipeline writes whatever comes
out of the chain.

Chain types:
    FilterStage      - run inner stages on a subset, then restore the rest
    LintStage        - report diagnostics, pass content through unchanged
    ConcatStage      - many artifacts -> one named artifact
    TransformStage   - opaque per-file content transform
    MinifyStage      - derived ``.min`` artifact
    RenameStage      - change the file name
    FlattenStage     - drop directories from the path
    SourceMapStage   - emit a ``.map`` file beside each artifact

Example:
    chain = [
        TransformStage(substitute_variables, name='variables'),
        FilterStage(['**/*', '!defaults.css'], [LintStage(lint_styles)]),
        ConcatStage('main.css'),
    ]
"""

import json
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import TransformError
from ..logging import get_logger
from .sources import SourceFile, matches

logger = get_logger('stages')


@dataclass(frozen=True)
class Artifact:
    """An output file travelling through a pipeline.

    Attributes:
        path: Path relative to the asset class destination subpath
        content: File content
        sources: Source paths (relative to their glob base) it came from
    """
    path: str
    content: bytes
    sources: Tuple[str, ...] = ()

    @classmethod
    def from_source(cls, source: SourceFile) -> 'Artifact':
        return cls(path=source.relative, content=source.read(), sources=(source.relative,))

    @property
    def text(self) -> str:
        return self.content.decode('utf-8')

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    def with_content(self, content: Union[bytes, str]) -> 'Artifact':
        if isinstance(content, str):
            content = content.encode('utf-8')
        return replace(self, content=content)

    def with_path(self, path: str) -> 'Artifact':
        return replace(self, path=path)


@dataclass(frozen=True)
class LintFinding:
    """A non-fatal diagnostic reported by a lint stage."""
    path: str
    message: str
    line: Optional[int] = None
    rule: Optional[str] = None

    def __str__(self) -> str:
        location = self.path if self.line is None else f"{self.path}:{self.line}"
        rule = f" [{self.rule}]" if self.rule else ''
        return f"{location}: {self.message}{rule}"


@dataclass
class StageContext:
    """Per-run state shared by the stages of one pipeline.

    Attributes:
        asset_class: Name of the running asset class
        findings: Lint findings collected so far
    """
    asset_class: str = ''
    findings: List[LintFinding] = field(default_factory=list)

    def report(self, finding: LintFinding) -> None:
        self.findings.append(finding)
        logger.warning("%s lint: %s", self.asset_class, finding)


class Stage(ABC):
    """Base class for all stages."""

    name = 'stage'

    @abstractmethod
    def apply(self, artifacts: List[Artifact], context: StageContext) -> List[Artifact]:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def run_stages(stages: Sequence[Stage], artifacts: List[Artifact],
               context: StageContext) -> List[Artifact]:
    """Run artifacts through stages in order."""
    for stage in stages:
        artifacts = stage.apply(artifacts, context)
    return artifacts


def min_path(path: str, suffix: str = '.min') -> str:
    """Insert suffix before the extension: main.css -> main.min.css"""
    root, ext = posixpath.splitext(path)
    return f"{root}{suffix}{ext}"


class FilterStage(Stage):
    """Run inner stages on the artifacts matching patterns only.

    Patterns are globs matched against the artifact path; a leading ``!``
    excludes. Artifacts left out of the subset pass through untouched and
    keep their position.
    """

    name = 'filter'

    def __init__(self, patterns: Sequence[str], stages: Sequence[Stage]):
        self.include = [p for p in patterns if not p.startswith('!')]
        self.exclude = [p[1:] for p in patterns if p.startswith('!')]
        self.stages = list(stages)

    def selects(self, artifact: Artifact) -> bool:
        if not any(matches(p, artifact.path) for p in self.include):
            return False
        return not any(matches(p, artifact.path) for p in self.exclude)

    def apply(self, artifacts, context):
        selected = [a for a in artifacts if self.selects(a)]
        if not selected:
            return list(artifacts)

        processed = run_stages(self.stages, selected, context)

        # One output per input: put each back in its original slot
        if len(processed) == len(selected):
            replacements = iter(processed)
            return [next(replacements) if self.selects(a) else a for a in artifacts]

        # Otherwise the processed block takes the first selected position
        result: List[Artifact] = []
        inserted = False
        for artifact in artifacts:
            if not self.selects(artifact):
                result.append(artifact)
            elif not inserted:
                result.extend(processed)
                inserted = True
        return result


class LintStage(Stage):
    """Reporting-only stage: content passes through unmodified.

    The linter receives an artifact and yields LintFinding objects.
    """

    name = 'lint'

    def __init__(self, linter: Callable[[Artifact], Iterable[LintFinding]]):
        self.linter = linter

    def apply(self, artifacts, context):
        for artifact in artifacts:
            for finding in self.linter(artifact):
                context.report(finding)
        return list(artifacts)


class ConcatStage(Stage):
    """Join all artifacts into one, in the order received."""

    name = 'concat'

    def __init__(self, filename: str, separator: str = '\n'):
        self.filename = filename
        self.separator = separator.encode('utf-8')

    def apply(self, artifacts, context):
        if not artifacts:
            return []
        sources: List[str] = []
        for artifact in artifacts:
            sources.extend(s for s in artifact.sources if s not in sources)
        content = self.separator.join(a.content for a in artifacts)
        return [Artifact(path=self.filename, content=content, sources=tuple(sources))]


class TransformStage(Stage):
    """Apply an opaque text transform to each artifact.

    Args:
        func: Callable taking the text and the options as keyword
            arguments, returning the new text
        options: Keyword arguments passed to func
        name: Stage name for error messages
    """

    def __init__(self, func: Callable[..., str], options: Optional[Dict[str, Any]] = None,
                 name: str = 'transform'):
        self.func = func
        self.options = dict(options or {})
        self.name = name

    def options_for(self, artifact: Artifact) -> Dict[str, Any]:
        return self.options

    def _transform(self, artifact: Artifact) -> Artifact:
        try:
            return artifact.with_content(self.func(artifact.text, **self.options_for(artifact)))
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(
                f"{self.name} failed on '{artifact.path}': {e}",
                stage=self.name, path=artifact.path,
            ) from e

    def apply(self, artifacts, context):
        return [self._transform(a) for a in artifacts]


class MinifyStage(TransformStage):
    """Produce ``.min`` artifacts from already concatenated artifacts."""

    def __init__(self, func: Callable[..., str], options: Optional[Dict[str, Any]] = None,
                 suffix: str = '.min'):
        super().__init__(func, options, name='minify')
        self.suffix = suffix

    def apply(self, artifacts, context):
        return [
            self._transform(a).with_path(min_path(a.path, self.suffix))
            for a in artifacts
        ]


class RenameStage(Stage):
    """Rename artifacts, keeping their directory."""

    name = 'rename'

    def __init__(self, filename: str):
        self.filename = filename

    def apply(self, artifacts, context):
        return [
            a.with_path(posixpath.join(posixpath.dirname(a.path), self.filename))
            for a in artifacts
        ]


class FlattenStage(Stage):
    """Drop directories: views/partials/x.twig -> x.twig"""

    name = 'flatten'

    def apply(self, artifacts, context):
        return [a.with_path(a.name) for a in artifacts]


class SourceMapStage(Stage):
    """Emit a version 3 source map beside each artifact.

    The map lists the original sources; segment mappings are left empty
    since the transforms are opaque. CSS and JS artifacts get a
    ``sourceMappingURL`` trailer pointing at the map.
    """

    name = 'sourcemap'

    TRAILERS = {
        '.css': '\n/*# sourceMappingURL={} */\n',
        '.js': '\n//# sourceMappingURL={}\n',
    }

    def annotate(self, artifact: Artifact) -> Artifact:
        trailer = self.TRAILERS.get(posixpath.splitext(artifact.path)[1])
        if trailer is None:
            return artifact
        url = trailer.format(artifact.name + '.map').encode('utf-8')
        return artifact.with_content(artifact.content.rstrip(b'\n') + url)

    def apply(self, artifacts, context):
        result = []
        for artifact in artifacts:
            artifact = self.annotate(artifact)
            source_map = {
                'version': 3,
                'file': artifact.name,
                'sources': list(artifact.sources),
                'names': [],
                'mappings': '',
            }
            result.append(artifact)
            result.append(Artifact(
                path=artifact.path + '.map',
                content=json.dumps(source_map).encode('utf-8'),
                sources=artifact.sources,
            ))
        return result
