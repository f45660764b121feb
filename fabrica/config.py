"""Settings parsing and the immutable build configuration.

The settings document is the project's ``site.yml``. Recognized keys:

    slug: my-theme              # theme folder name under wp-content/themes
    hostname: my-theme.dev      # used for the theme URI and the dev proxy
    title: My Theme             # theme name written into style.css
    author: Jane Doe            # theme author written into style.css
    poll_interval: 0.5          # watcher polling period in seconds
    reload_port: 35729          # live-reload server port while watching, 0 disables
    tools:                      # optional external commands
      lint_styles: "csslint --format=compact {path}"
      minify_scripts: "uglifyjs --compress"
      activate: "vagrant ssh -c 'wp theme activate {slug}'"

Every key is optional and empty values fall back to the defaults.
Unknown keys are ignored.
"""

from dataclasses import dataclass, field
from pathlib import Path, PureWindowsPath
from typing import Any, Dict, Optional, Union

import yaml

from .exceptions import ConfigError
from .logging import get_logger

logger = get_logger('config')

DEFAULT_SLUG = 'yww-project'
DEFAULT_HOSTNAME = 'yeswework.dev'
DEFAULT_TITLE = 'YWW Project'
DEFAULT_AUTHOR = 'Yes We Work - http://yeswework.com/'
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_RELOAD_PORT = 35729
DEFAULT_ACTIVATE_COMMAND = 'vagrant ssh -c "wp theme activate {slug}"'

SETTING_KEYS = ('slug', 'hostname', 'title', 'author')
TOOL_KEYS = frozenset({
    'lint_styles',
    'lint_scripts',
    'minify_styles',
    'minify_scripts',
    'activate',
})


@dataclass(frozen=True)
class Settings:
    """Project settings, read once at startup.

    Attributes:
        slug: Theme folder name
        hostname: Development hostname
        title: Human readable theme name
        author: Theme author line
        tools: Mapping of tool name to external command template
        poll_interval: Watcher polling period in seconds
        reload_port: Live-reload server port; 0 disables the server
    """
    slug: str = DEFAULT_SLUG
    hostname: str = DEFAULT_HOSTNAME
    title: str = DEFAULT_TITLE
    author: str = DEFAULT_AUTHOR
    tools: Dict[str, str] = field(default_factory=dict)
    poll_interval: float = DEFAULT_POLL_INTERVAL
    reload_port: int = DEFAULT_RELOAD_PORT

    def __post_init__(self):
        _validate_slug(self.slug)

    @property
    def url(self) -> str:
        return f"http://{self.hostname}"

    def tool(self, name: str) -> Optional[str]:
        """Return the command configured for a tool, or None."""
        return self.tools.get(name)


@dataclass(frozen=True)
class BuildConfig:
    """Immutable configuration passed to every component.

    Attributes:
        root: Project root directory
        settings: Parsed project settings
    """
    root: Path
    settings: Settings = field(default_factory=Settings)

    @property
    def src(self) -> Path:
        """Source tree."""
        return self.root / 'dev' / 'src'

    @property
    def build(self) -> Path:
        """Staging output root."""
        return self.root / 'dev' / 'build'

    @property
    def theme(self) -> Path:
        """Live theme root consumed by the running site."""
        return self.root / 'www' / 'wordpress' / 'wp-content' / 'themes' / self.settings.slug

    @property
    def destinations(self):
        return [self.build, self.theme]


def parse_settings_file(path: Union[str, Path]) -> Settings:
    """Parse and validate a settings file.

    Args:
        path: Path to the YAML settings file

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is missing or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax in {path}: {e}")

    return _validate_settings_data(data)


def parse_settings_string(content: str) -> Settings:
    """Parse settings from a YAML string."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    return _validate_settings_data(data)


def load_config(
    root: Union[str, Path],
    settings_path: Union[str, Path, None] = None,
) -> BuildConfig:
    """Build the configuration for a project root.

    Args:
        root: Project root directory
        settings_path: Settings file; relative paths are resolved
            against ``root``. None uses built-in defaults only.

    Returns:
        BuildConfig for the project
    """
    root = Path(root).resolve()
    if settings_path is None:
        settings = Settings()
    else:
        settings_path = Path(settings_path)
        if not settings_path.is_absolute():
            settings_path = root / settings_path
        settings = parse_settings_file(settings_path)

    logger.debug("settings: slug=%s hostname=%s", settings.slug, settings.hostname)
    return BuildConfig(root=root, settings=settings)


def _validate_settings_data(data: Any) -> Settings:
    """Validate parsed settings data.

    Args:
        data: Parsed YAML document

    Returns:
        Settings with defaults applied

    Raises:
        ConfigError: If validation fails
    """
    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Settings root must be a mapping")

    values: Dict[str, Any] = {}
    for key in SETTING_KEYS:
        value = data.get(key)
        if value is None or value == '':
            continue
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ConfigError(f"Setting '{key}' must be a string")
        values[key] = str(value)

    values['tools'] = _validate_tools(data.get('tools'))

    interval = data.get('poll_interval')
    if interval is not None:
        if isinstance(interval, bool) or not isinstance(interval, (int, float)):
            raise ConfigError("'poll_interval' must be a number")
        if interval <= 0:
            raise ConfigError("'poll_interval' must be positive")
        values['poll_interval'] = float(interval)

    port = data.get('reload_port')
    if port is not None:
        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
            raise ConfigError("'reload_port' must be a port number (0 disables)")
        values['reload_port'] = port

    return Settings(**values)


def _validate_slug(slug: str) -> None:
    """The slug must be a single path component under the themes folder."""
    if slug in ('.', '..') or '/' in slug or '\\' in slug or PureWindowsPath(slug).drive:
        raise ConfigError(f"Setting 'slug' must be a plain folder name, got {slug!r}")


def _validate_tools(tools: Any) -> Dict[str, str]:
    """Validate the optional ``tools`` mapping."""
    if tools is None:
        return {}

    if not isinstance(tools, dict):
        raise ConfigError("'tools' must be a mapping")

    validated = {}
    for name, command in tools.items():
        if name not in TOOL_KEYS:
            logger.warning("ignoring unknown tool '%s'", name)
            continue
        if command is None or command == '':
            continue
        if not isinstance(command, str):
            raise ConfigError(f"Tool '{name}' must be a command string")
        validated[name] = command
    return validated
