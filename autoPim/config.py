"""
Configuration management for autoPim.

Handles locating, loading and validating the TOML configuration file and
merging command-line overrides into a single PimConfig object.
"""

# Standard library imports
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Local imports
from .activation.models import DEFAULT_DURATION, DEFAULT_JUSTIFICATION
from .arm.api_client import DEFAULT_TIMEOUT
from .errors import ConfigError


CONFIG_FILE_NAME = "pim.toml"
APP_DIR_NAME = "autopim"

# ISO-8601 durations accepted by PIM, e.g. PT8H, PT30M, PT1H30M
DURATION_PATTERN = re.compile(r'^PT(?=\d)(\d+H)?(\d+M)?(\d+S)?$')


def _ensure_private_dir(path: Path) -> Path:
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return path


def init_config_dir(home: Optional[Path] = None) -> Path:
    """Create ~/.config/autopim if needed and return it."""
    return _ensure_private_dir((home or Path.home()) / ".config" / APP_DIR_NAME)


def init_cache_dir(home: Optional[Path] = None) -> Path:
    """Create ~/.cache/autopim if needed and return it."""
    return _ensure_private_dir((home or Path.home()) / ".cache" / APP_DIR_NAME)


def find_config_file(config_dir: Optional[Path]) -> Optional[Path]:
    """Return the first existing pim.toml in the config directory or the working directory."""
    candidates = []
    if config_dir:
        candidates.append(Path(config_dir) / CONFIG_FILE_NAME)
    candidates.append(Path.cwd() / CONFIG_FILE_NAME)

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def split_subscriptions(value: str) -> List[str]:
    """Split a comma separated list of subscription names, dropping empty entries."""
    return [name.strip() for name in value.split(',') if name.strip()]


@dataclass
class PimConfig:
    """Settings for one activation run, built once and passed down explicitly."""

    tenant: Optional[str] = None
    subscriptions: List[str] = field(default_factory=list)
    justification: str = DEFAULT_JUSTIFICATION
    duration: str = DEFAULT_DURATION
    timeout: float = DEFAULT_TIMEOUT
    dry_run: bool = False
    debug: bool = False
    use_cache: bool = True
    proxy: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PimConfig':
        """Build a config from a parsed TOML document.

        Unknown keys are ignored. Subscription names are trimmed of surrounding
        whitespace and empty names are dropped, the same as for --subs.

        Raises:
            ConfigError: If a known key has the wrong type
        """
        config = cls()

        for key in ('tenant', 'justification', 'duration', 'proxy'):
            if key in data:
                if not isinstance(data[key], str):
                    raise ConfigError(f"'{key}' must be a string")
                setattr(config, key, data[key].strip())

        if 'subscriptions' in data:
            subs = data['subscriptions']
            if isinstance(subs, str):
                config.subscriptions = split_subscriptions(subs)
            elif isinstance(subs, list) and all(isinstance(s, str) for s in subs):
                config.subscriptions = [s.strip() for s in subs if s.strip()]
            else:
                raise ConfigError("'subscriptions' must be a list of subscription names")

        if 'timeout' in data:
            timeout = data['timeout']
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise ConfigError("'timeout' must be a number of seconds")
            config.timeout = float(timeout)

        return config

    @classmethod
    def from_file(cls, file_path) -> 'PimConfig':
        """Load configuration from a TOML file.

        Args:
            file_path: Path to the TOML configuration file

        Returns:
            PimConfig instance

        Raises:
            ConfigError: If the file doesn't exist, is not valid TOML or has invalid values
        """
        path = Path(file_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {file_path}")

        try:
            with open(path, 'rb') as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {file_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {file_path}: {e}")

        return cls.from_dict(data)

    def merge_cli(self, args) -> 'PimConfig':
        """Apply command-line overrides. Values given on the command line win."""
        if getattr(args, 'tenant', None):
            self.tenant = args.tenant.strip()
        if getattr(args, 'subs', None):
            self.subscriptions = split_subscriptions(args.subs)
        if getattr(args, 'justification', None):
            self.justification = args.justification
        if getattr(args, 'duration', None):
            self.duration = args.duration
        if getattr(args, 'timeout', None) is not None:
            self.timeout = float(args.timeout)
        if getattr(args, 'proxy', None):
            self.proxy = args.proxy
        if getattr(args, 'dryrun', False):
            self.dry_run = True
        if getattr(args, 'debug', False):
            self.debug = True
        if getattr(args, 'nocache', False):
            self.use_cache = False
        return self

    def validate(self):
        """Check the merged configuration.

        Raises:
            ConfigError: On the first invalid value
        """
        if not self.subscriptions:
            raise ConfigError("No subscriptions provided (use --subs or 'subscriptions' in the config file)")
        if not DURATION_PATTERN.match(self.duration):
            raise ConfigError(f"Invalid duration '{self.duration}', expected an ISO-8601 duration such as PT8H")
        if self.timeout <= 0:
            raise ConfigError("Timeout must be positive")
        if not self.justification.strip():
            raise ConfigError("Justification must not be empty")
