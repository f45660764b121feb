"""Asset class definitions for a theme project."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, TYPE_CHECKING

from .commands import CommandLinter, CommandMinifyStage
from .images import ImageOptimizeStage
from .stages import (
    ConcatStage, FilterStage, FlattenStage, LintStage, MinifyStage,
    SourceMapStage, Stage, TransformStage,
)
from .transforms import compact_css, compact_js, lint_scripts, lint_styles, substitute_variables

if TYPE_CHECKING:
    from ..config import BuildConfig

# Shared stylesheets that are not worth linting on every project
UNLINTED_STYLES = ('defaults.css', 'helpers.css')

IMAGE_OPTIONS = {'progressive': True, 'interlaced': True}


@dataclass(frozen=True)
class AssetClass:
    """A category of source files sharing a glob, destination and chain.

    Attributes:
        name: Asset class name, also the task name
        patterns: Source globs, relative to the source tree
        dest: Destination subpath ('' for the theme root)
        chain: Stages run before the first write
        derived: Stages run on the chain output after it was written
        source_gate: Skip unchanged sources before running the chain
        reload: Publish reload events after writes
        reload_match: Only publish for written paths matching this glob
    """
    name: str
    patterns: Tuple[str, ...]
    dest: str = ''
    chain: Tuple[Stage, ...] = ()
    derived: Tuple[Stage, ...] = ()
    source_gate: bool = False
    reload: bool = True
    reload_match: Optional[str] = None


def _minify(config: 'BuildConfig', tool: str, default) -> Stage:
    command = config.settings.tool(tool)
    if command:
        return CommandMinifyStage(command)
    return MinifyStage(default)


def _linter(config: 'BuildConfig', tool: str, default):
    command = config.settings.tool(tool)
    if command:
        return CommandLinter(command)
    return default


def default_asset_classes(config: 'BuildConfig') -> Dict[str, AssetClass]:
    """Return the asset classes of a theme project, keyed by name."""
    styles = AssetClass(
        name='styles',
        patterns=('assets/css/**/*.{css,pcss}',),
        dest='css',
        chain=(
            TransformStage(substitute_variables, name='variables'),
            FilterStage(
                ['**/*'] + [f'!{name}' for name in UNLINTED_STYLES],
                [LintStage(_linter(config, 'lint_styles', lint_styles))],
            ),
            ConcatStage('main.css'),
        ),
        derived=(_minify(config, 'minify_styles', compact_css), SourceMapStage()),
        reload_match='**/*.css',
    )
    scripts = AssetClass(
        name='scripts',
        patterns=('assets/js/**/*.js',),
        dest='js',
        chain=(
            LintStage(_linter(config, 'lint_scripts', lint_scripts)),
            ConcatStage('main.js'),
        ),
        derived=(_minify(config, 'minify_scripts', compact_js), SourceMapStage()),
    )
    vendor_scripts = AssetClass(
        name='vendor-scripts',
        patterns=('bower.json', 'bower_components/**/*.js'),
        dest='js',
        chain=(ConcatStage('lib.js'),),
        derived=(_minify(config, 'minify_scripts', compact_js), SourceMapStage()),
    )
    vendor_styles = AssetClass(
        name='vendor-styles',
        patterns=('bower.json', 'bower_components/**/*.css'),
        dest='css',
        chain=(ConcatStage('lib.css'),),
        derived=(_minify(config, 'minify_styles', compact_css), SourceMapStage()),
        reload_match='**/*.css',
    )
    includes = AssetClass(
        name='includes',
        patterns=('includes/**/*.php', 'includes/.env'),
        dest='inc',
    )
    controllers = AssetClass(
        name='controllers',
        patterns=('templates/controllers/**/*.php',),
        dest='',
        chain=(FlattenStage(),),
    )
    views = AssetClass(
        name='views',
        patterns=('templates/**/*.twig',),
        dest='views',
        chain=(FlattenStage(),),
    )
    images = AssetClass(
        name='images',
        patterns=('assets/img/**/*',),
        dest='img',
        chain=(ImageOptimizeStage(IMAGE_OPTIONS),),
        source_gate=True,
    )
    fonts = AssetClass(
        name='fonts',
        patterns=('assets/fonts/**/*',),
        dest='fonts',
    )

    classes = [vendor_scripts, vendor_styles, styles, scripts, includes,
               controllers, views, images, fonts]
    return {cls.name: cls for cls in classes}
