"""
Configuration for note-researcher.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (note-researcher.toml)
3. Default values (lowest priority)

Environment variables:
- NOTE_RESEARCHER_CONFIG_FILE: Path to TOML config file
- NOTE_RESEARCHER_ENABLED: Enable deep research (true/false)
- NOTE_RESEARCHER_PROMPT_PATH: Vault-relative path of the prompt note
- NOTE_RESEARCHER_ENV_FILE: Path to the provider credential (.env) file
- NOTE_RESEARCHER_NOTICE_INTERVAL: Seconds between progress notices
- NOTE_RESEARCHER_CHECK_INTERVAL: Seconds between status checks
- NOTE_RESEARCHER_VAULT_ROOT: Vault directory (default: current directory)
- NOTE_RESEARCHER_STATE_DIR: Run state/log directory (default: <vault>/.note-researcher)
- NOTE_RESEARCHER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)

The credential file stays outside the vault; only its path is configured here.
"""

import logging
import os
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version as get_package_version
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback


logger = logging.getLogger(__name__)

DEFAULT_NOTICE_INTERVAL_SEC = 5
DEFAULT_CHECK_INTERVAL_SEC = 60
STATE_DIRNAME = ".note-researcher"
DEFAULT_CONFIG_FILES = ("note-researcher.toml", ".note-researcher.toml")


def _get_version() -> str:
    """Get package version from metadata."""
    try:
        return get_package_version("note-researcher")
    except PackageNotFoundError:
        return "0.1.0"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _parse_interval(value: Any, name: str, current: int) -> int:
    """Parse a positive whole number of seconds, keeping ``current`` on bad input."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, keeping %s", name, value, current)
        return current
    if parsed <= 0:
        logger.warning("%s must be positive, got %s; keeping %s", name, parsed, current)
        return current
    return parsed


@dataclass
class ResearchConfig:
    """Deep research settings with support for env vars and TOML overrides."""

    # Feature settings
    enabled: bool = False
    prompt_path: str = ""
    env_file_path: str = ""
    notice_interval_sec: int = DEFAULT_NOTICE_INTERVAL_SEC
    check_interval_sec: int = DEFAULT_CHECK_INTERVAL_SEC

    # Vault configuration
    vault_root: Path = field(default_factory=Path.cwd)
    state_dir: Optional[Path] = None

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = False

    version: str = field(default_factory=_get_version)

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ResearchConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get("NOTE_RESEARCHER_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            for default_path in DEFAULT_CONFIG_FILES:
                if Path(default_path).exists():
                    config._load_toml(Path(default_path))
                    break

        config._load_env()
        return config

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("Error loading config file %s: %s", path, e)
            return

        self.apply(data.get("research", {}))

        if "vault" in data:
            vault = data["vault"]
            if "root" in vault:
                self.vault_root = Path(vault["root"]).expanduser()
            if "state_dir" in vault:
                self.state_dir = Path(vault["state_dir"]).expanduser()

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if enabled := os.environ.get("NOTE_RESEARCHER_ENABLED"):
            self.enabled = _parse_bool(enabled)
        if prompt := os.environ.get("NOTE_RESEARCHER_PROMPT_PATH"):
            self.prompt_path = prompt
        if env_file := os.environ.get("NOTE_RESEARCHER_ENV_FILE"):
            self.env_file_path = env_file
        if notice := os.environ.get("NOTE_RESEARCHER_NOTICE_INTERVAL"):
            self.notice_interval_sec = _parse_interval(
                notice, "notice interval", self.notice_interval_sec
            )
        if check := os.environ.get("NOTE_RESEARCHER_CHECK_INTERVAL"):
            self.check_interval_sec = _parse_interval(
                check, "check interval", self.check_interval_sec
            )
        if vault := os.environ.get("NOTE_RESEARCHER_VAULT_ROOT"):
            self.vault_root = Path(vault).expanduser()
        if state := os.environ.get("NOTE_RESEARCHER_STATE_DIR"):
            self.state_dir = Path(state).expanduser()
        if level := os.environ.get("NOTE_RESEARCHER_LOG_LEVEL"):
            self.log_level = level.upper()

    def apply(self, settings: Dict[str, Any]) -> None:
        """Apply explicit settings changes (the ``[research]`` table shape).

        Invalid interval values are ignored with a warning.
        """
        if "enabled" in settings:
            self.enabled = _parse_bool(settings["enabled"])
        if "prompt_path" in settings:
            self.prompt_path = str(settings["prompt_path"])
        if "env_file_path" in settings:
            self.env_file_path = str(settings["env_file_path"])
        if "notice_interval_sec" in settings:
            self.notice_interval_sec = _parse_interval(
                settings["notice_interval_sec"], "notice interval", self.notice_interval_sec
            )
        if "check_interval_sec" in settings:
            self.check_interval_sec = _parse_interval(
                settings["check_interval_sec"], "check interval", self.check_interval_sec
            )

    def get_state_dir(self) -> Path:
        """Resolved directory for the run record and the run log."""
        if self.state_dir is not None:
            return self.state_dir
        return self.vault_root / STATE_DIRNAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "prompt_path": self.prompt_path,
            "env_file_path": self.env_file_path,
            "notice_interval_sec": self.notice_interval_sec,
            "check_interval_sec": self.check_interval_sec,
            "vault_root": str(self.vault_root),
            "state_dir": str(self.get_state_dir()),
            "log_level": self.log_level,
            "version": self.version,
        }

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
                '"logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        root_logger = logging.getLogger("note_researcher")
        root_logger.setLevel(level)
        if root_logger.handlers:
            return

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)


# Process-wide default used by the CLI; the run controller takes its config by injection
_config: Optional[ResearchConfig] = None


def get_config() -> ResearchConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ResearchConfig.from_env()
    return _config


def set_config(config: ResearchConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
