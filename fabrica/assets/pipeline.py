"""Run one asset class: discover, transform, gate, write, notify.

The order of operations is fixed:

    discover -> chain -> gate + write full artifacts -> reload
             -> derived chain (minify, sourcemap) -> gate + write -> reload

so a failing derived stage never keeps the full artifact from the
destinations.
"""

import posixpath
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from ..exceptions import SinkError
from ..logging import get_logger
from ..tracking import ChangeTracker
from .sources import SourceFile, discover
from .stages import Artifact, LintFinding, StageContext, run_stages

if TYPE_CHECKING:
    from pathlib import Path
    from ..reload import ReloadBus
    from ..sink import DualSink
    from .classes import AssetClass

logger = get_logger('pipeline')


@dataclass
class PipelineReport:
    """What one pipeline run did.

    Attributes:
        asset_class: Name of the asset class
        discovered: Number of source files found
        written: Destination-relative paths written to every root
        skipped: Destination-relative paths already up to date
        findings: Lint findings reported by the chain
        errors: (path, root, exception) for failed destination writes
    """
    asset_class: str
    discovered: int = 0
    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    findings: List[LintFinding] = field(default_factory=list)
    errors: List[Tuple[str, str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class AssetPipeline:
    """Pipeline for a single AssetClass.

    Each pipeline owns its ChangeTracker; trackers are never shared
    between asset classes.

    Args:
        asset_class: The asset class definition
        root: Directory the class patterns are relative to
        sink: Destination writer
        bus: Reload notifications, optional
        sources: Replaces glob discovery (used for vendor libraries)
    """

    def __init__(self, asset_class: 'AssetClass', root: 'Path', sink: 'DualSink',
                 bus: Optional['ReloadBus'] = None,
                 sources: Optional[Callable[[], List[SourceFile]]] = None):
        self.asset_class = asset_class
        self.root = root
        self.sink = sink
        self.bus = bus
        self.tracker = ChangeTracker(sink)
        self._sources = sources

    @property
    def name(self) -> str:
        return self.asset_class.name

    def discover(self) -> List[SourceFile]:
        if self._sources is not None:
            return self._sources()
        return discover(self.root, self.asset_class.patterns, self.name)

    def destination_path(self, path: str) -> str:
        if not self.asset_class.dest:
            return path
        return posixpath.join(self.asset_class.dest, path)

    def run(self) -> PipelineReport:
        """Run the pipeline once.

        Raises:
            TransformError: A stage failed
            SinkError: A destination write failed (after all writes were
                attempted)
        """
        cls = self.asset_class
        report = PipelineReport(asset_class=self.name)
        context = StageContext(asset_class=self.name)

        sources = self.discover()
        report.discovered = len(sources)

        if cls.source_gate:
            sources = [
                s for s in sources
                if self.tracker.is_source_stale(s.path, self.destination_path(s.relative))
            ]

        artifacts = [Artifact.from_source(s) for s in sources]
        artifacts = run_stages(cls.chain, artifacts, context)
        self._write_all(artifacts, report)

        if cls.derived and artifacts:
            derived = run_stages(cls.derived, artifacts, context)
            self._write_all(derived, report)

        report.findings = list(context.findings)
        logger.info(
            "%s: %d written, %d unchanged, %d lint finding(s)",
            self.name, len(report.written), len(report.skipped), len(report.findings),
        )

        if report.errors:
            failures = [(root, e) for _, root, e in report.errors]
            paths = sorted({path for path, _, _ in report.errors})
            raise SinkError(f"{self.name}: failed to write {', '.join(paths)}", failures)

        return report

    def _write_all(self, artifacts: List[Artifact], report: PipelineReport) -> None:
        written = []
        for artifact in artifacts:
            target = artifact.with_path(self.destination_path(artifact.path))

            check = self.tracker.check(target)
            if check.is_up_to_date:
                report.skipped.append(target.path)
                continue
            logger.debug("%s: writing %s (%s)", self.name, target.path, check.reason)

            result = self.sink.write(target.path, target.content)
            if result.ok:
                self.tracker.record(target)
                written.append(target.path)
            else:
                report.errors.extend((target.path, root, e) for root, e in result.errors)

        report.written.extend(written)
        if written and self.bus is not None and self.asset_class.reload:
            self.bus.publish(self.name, written, match=self.asset_class.reload_match)
