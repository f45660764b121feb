"""Generated theme files: the functions.php aggregator and style.css header.

functions.php requires every top-level include in discovery order:

    <?php
    require_once(get_stylesheet_directory() . '/inc/setup.php');
    require_once(get_stylesheet_directory() . '/inc/widgets.php');

Files nested under a sub-directory of includes/ (vendored code) are
copied to the theme but not required; the top-level files are expected
to load them.
"""

import posixpath
from typing import Iterable, TYPE_CHECKING

from .assets.sources import SourceFile, matches
from .logging import get_logger

if TYPE_CHECKING:
    from .config import Settings
    from .sink import DualSink, WriteResult

logger = get_logger('manifest')

EOL = '\r\n'


class ManifestGenerator:
    """Render and write the aggregator file.

    Attributes:
        filename: Aggregator path relative to the theme root
        include_dir: Destination subpath the includes are copied to
        pattern: Only top-level files matching this glob are listed
    """

    def __init__(self, filename: str = 'functions.php', include_dir: str = 'inc',
                 pattern: str = '*.php'):
        self.filename = filename
        self.include_dir = include_dir
        self.pattern = pattern

    def entries(self, sources: Iterable[SourceFile]):
        """Yield the destination paths to list, in discovery order."""
        for source in sources:
            if source.is_top_level and matches(self.pattern, source.relative):
                yield posixpath.join(self.include_dir, source.relative)

    def render(self, sources: Iterable[SourceFile]) -> str:
        lines = ['<?php']
        for entry in self.entries(sources):
            lines.append(f"require_once(get_stylesheet_directory() . '/{entry}');")
        return EOL.join(lines) + EOL

    def write(self, sources: Iterable[SourceFile], sink: 'DualSink') -> 'WriteResult':
        """Recreate the aggregator in every destination.

        The file is always rewritten as a whole; never call this from
        more than one task.
        """
        content = self.render(sources)
        logger.debug("writing %s (%d entries)", self.filename, content.count(EOL) - 1)
        result = sink.write(self.filename, content)
        result.raise_for_errors()
        return result


def render_header(settings: 'Settings') -> str:
    """Render the style.css theme header from project settings."""
    return EOL.join([
        '/*',
        f"Theme Name: {settings.title}",
        f"Theme URI: {settings.url}",
        f"Author: {settings.author}",
        '*/',
    ])


def write_header(settings: 'Settings', sink: 'DualSink', filename: str = 'style.css') -> 'WriteResult':
    """Write the theme header; runs on every build, ungated."""
    result = sink.write(filename, render_header(settings))
    result.raise_for_errors()
    return result
