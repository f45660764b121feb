"""Change detection gate for destination writes.

A ChangeTracker answers "is this output stale?" right before the sink
writes it. The comparison is always made against the destination files,
never against a memoized view of the sources, so a destination that was
deleted or edited behind our back is rewritten on the next run.

Each destination check uses a 3-level test:
  1. If the destination timestamp and size match the record taken at the
     last write -> use the recorded md5 (fast path)
  2. If the size differs from the new content -> changed
  3. Otherwise compare md5 of the destination with md5 of the content

Usage:
    tracker = ChangeTracker(sink)
    if tracker.is_stale(artifact):
        sink.write(artifact.path, artifact.content).raise_for_errors()
        tracker.record(artifact)
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .assets.stages import Artifact
    from .sink import DualSink


class CheckStatus(Enum):
    """Result of a staleness check."""
    UP_TO_DATE = "up-to-date"
    CHANGED = "changed"
    MISSING = "missing"


@dataclass
class ChangeCheckResult:
    """Result of checking one artifact against the destinations.

    Attributes:
        status: The check result status
        reason: Human-readable explanation of why the file must be written
    """
    status: CheckStatus
    reason: Optional[str] = None

    @property
    def is_up_to_date(self) -> bool:
        return self.status == CheckStatus.UP_TO_DATE

    @property
    def needs_write(self) -> bool:
        return self.status in (CheckStatus.CHANGED, CheckStatus.MISSING)


@dataclass
class ChangeRecord:
    """Fingerprint of a destination file taken right after a write."""
    timestamp: float
    size: int
    md5: str


def content_md5(content: bytes) -> str:
    """Return the md5 hex digest of in-memory content."""
    return hashlib.md5(content).hexdigest()


class ChangeTracker:
    """Per asset class record of what was last written where.

    Records are only created by record(), which the pipeline calls after
    a successful sink write.
    """

    def __init__(self, sink: 'DualSink'):
        self.sink = sink
        self._records: Dict[Tuple[str, str], ChangeRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def check(self, artifact: 'Artifact') -> ChangeCheckResult:
        """Compare the artifact content against every destination copy."""
        path = artifact.path
        digest = content_md5(artifact.content)

        for dest in self.sink.destinations:
            st = dest.stat(path)
            if st is None:
                return ChangeCheckResult(
                    status=CheckStatus.MISSING,
                    reason=f"'{path}' is missing from {dest}",
                )

            record = self._records.get((dest.get_key(), path))
            # Level 1: untouched since our last write
            if (record is not None and record.timestamp == st.timestamp
                    and record.size == st.size):
                dest_md5 = record.md5
            # Level 2: size changed = definitely modified
            elif st.size != len(artifact.content):
                return ChangeCheckResult(
                    status=CheckStatus.CHANGED,
                    reason=f"'{path}' differs in size in {dest}",
                )
            # Level 3: hash the destination
            else:
                dest_md5 = dest.md5(path)

            if dest_md5 != digest:
                return ChangeCheckResult(
                    status=CheckStatus.CHANGED,
                    reason=f"'{path}' content differs in {dest}",
                )

        return ChangeCheckResult(status=CheckStatus.UP_TO_DATE)

    def is_stale(self, artifact: 'Artifact') -> bool:
        """Return True if the artifact must be written."""
        return self.check(artifact).needs_write

    def is_source_stale(self, source: Path, relative_path: str) -> bool:
        """Pre-transform gate: compare a source file to its outputs by time.

        Used where the transform is expensive (image optimisation) and
        content comparison would require running it first. Stale if any
        destination copy is absent or older than the source.
        """
        try:
            source_mtime = Path(source).stat().st_mtime
        except OSError:
            return True

        for dest in self.sink.destinations:
            st = dest.stat(relative_path)
            if st is None or st.timestamp < source_mtime:
                return True
        return False

    def record(self, artifact: 'Artifact') -> None:
        """Store destination fingerprints after a successful write."""
        digest = content_md5(artifact.content)
        for dest in self.sink.destinations:
            st = dest.stat(artifact.path)
            if st is None:
                continue
            self._records[(dest.get_key(), artifact.path)] = ChangeRecord(
                timestamp=st.timestamp, size=st.size, md5=digest
            )

    def get_record(self, destination_key: str, path: str) -> Optional[ChangeRecord]:
        return self._records.get((destination_key, path))

    def forget(self) -> None:
        """Drop all records (e.g. after the outputs were cleaned)."""
        self._records.clear()
