"""ACF JSON lifecycle: the only files that flow from the live theme back
into the source tree.

Advanced Custom Fields saves its field groups as JSON inside the live
theme. Before each build those files are pulled into ``src/acf-json`` so
they end up under version control, then written back into both
destinations with the rest of the theme.

States:
    ABSENT      - no local mirror
    PULLED      - mirror copied from the live theme
    REGENERATED - mirror written into the destinations
"""

import shutil
from enum import Enum
from pathlib import Path
from typing import List, TYPE_CHECKING

from .assets.sources import discover
from .logging import get_logger

if TYPE_CHECKING:
    from .sink import DualSink

logger = get_logger('external_state')

ACF_DIR = 'acf-json'
ACF_PATTERN = ACF_DIR + '/*.json'


class ExternalStateStatus(Enum):
    ABSENT = "absent"
    PULLED = "pulled"
    REGENERATED = "regenerated"


class ExternalState:
    """Mirror of the externally owned ACF JSON files.

    Args:
        src: Source tree; the mirror lives in ``src/acf-json``
        live: Live theme root the CMS writes into
    """

    def __init__(self, src: Path, live: Path):
        self.src = Path(src)
        self.live = Path(live)
        self.status = (ExternalStateStatus.PULLED if self.mirror.is_dir()
                       else ExternalStateStatus.ABSENT)

    @property
    def mirror(self) -> Path:
        return self.src / ACF_DIR

    @property
    def live_dir(self) -> Path:
        return self.live / ACF_DIR

    def clean(self) -> None:
        """Delete the local mirror. Any state -> ABSENT."""
        if self.mirror.exists():
            shutil.rmtree(self.mirror)
        self.status = ExternalStateStatus.ABSENT
        logger.debug("removed %s", self.mirror)

    def pull(self) -> bool:
        """Copy the live JSON files into the mirror. ABSENT -> PULLED.

        A pull without a clean in between is a no-op, so a mirror is never
        merged with a newer live copy.

        Returns:
            True if files were pulled, False for a no-op
        """
        if self.status is not ExternalStateStatus.ABSENT:
            logger.debug("external state already %s; pull skipped", self.status.value)
            return False

        self.mirror.mkdir(parents=True, exist_ok=True)
        pulled = discover(self.live, [ACF_PATTERN], 'acf')
        for source in pulled:
            shutil.copy2(source.path, self.mirror / source.relative)
        self.status = ExternalStateStatus.PULLED
        logger.info("pulled %d ACF file(s) from %s", len(pulled), self.live_dir)
        return True

    def regenerate(self, sink: 'DualSink') -> List[str]:
        """Write the mirror into every destination. -> REGENERATED

        The acf-json directory is created in every destination even when
        there is nothing to copy, since the CMS saves into it at runtime.

        Returns:
            Destination-relative paths written
        """
        if self.status is ExternalStateStatus.ABSENT:
            logger.warning("regenerating external state that was never pulled")

        sink.ensure_dir(ACF_DIR)
        written = []
        for source in discover(self.src, [ACF_PATTERN], 'acf'):
            path = f"{ACF_DIR}/{source.relative}"
            sink.write(path, source.read()).raise_for_errors()
            written.append(path)
        self.status = ExternalStateStatus.REGENERATED
        return written
