"""Command line entry point.

Usage:
    fabrica [build|watch|install] [--settings site.yml] [--root .]
"""

import sys
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .exceptions import ConfigError
from .logging import configure_logging

TASKS = ('build', 'watch', 'install')


def main(args: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    import argparse

    parser = argparse.ArgumentParser(
        description='Build a WordPress theme from dev/src into dev/build and the live theme',
        prog='fabrica',
    )
    parser.add_argument(
        'task',
        nargs='?',
        default='watch',
        choices=TASKS,
        help='Task to run (default: watch)',
    )
    parser.add_argument(
        '--settings',
        default='site.yml',
        help='Settings file, relative to the project root (default: site.yml)',
    )
    parser.add_argument(
        '--root',
        default='.',
        help='Project root directory (default: current directory)',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log debug output',
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        default=None,
        help='Also write the log to this file',
    )
    parser.add_argument(
        '--list',
        action='store_true',
        help='List the available tasks and exit',
    )

    parsed = parser.parse_args(args)
    configure_logging(verbose=parsed.verbose, log_file=parsed.log_file)

    from .theme import ThemeBuild

    try:
        config = load_config(parsed.root, parsed.settings)
        theme = ThemeBuild(config)

        if parsed.list:
            for name in theme.graph.names:
                print(name)
            return 0

        result = theme.run(parsed.task)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        # Ctrl-C is the normal way to leave watch
        return 0

    if not result.ok:
        print(
            f"Error: {len(result.failures)} task(s) failed: {', '.join(result.failed_tasks)}",
            file=sys.stderr,
        )
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
