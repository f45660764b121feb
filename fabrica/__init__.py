"""fabrica - build and live-reload pipeline for WordPress themes.

Sources under dev/src are compiled into two mirrored roots, the staging
build (dev/build) and the live theme under wp-content/themes/<slug>.

Example:
    from fabrica import load_config, run_build

    result = run_build(load_config('.', 'site.yml'))
    if not result.ok:
        for failure in result.failures:
            print(failure)
"""

from .config import BuildConfig, Settings, load_config
from .exceptions import (
    ConfigError,
    ExternalProcessFailure,
    FabricaError,
    SinkError,
    TransformError,
)
from .theme import run_build, run_watch

__version__ = '0.1.0'

__all__ = [
    'BuildConfig',
    'Settings',
    'load_config',
    'run_build',
    'run_watch',
    'FabricaError',
    'ConfigError',
    'SinkError',
    'TransformError',
    'ExternalProcessFailure',
]
