"""Engine settings from YAML configuration and environment.

```yaml
defaults:
  command_timeout: 60
  lock_sleep: 10

devices:
  srx-lab:
    strict_parsing: true
  srx-offline:
    offline_set_file: ~/setconf/srx-offline.set
    offline_update: true
    file_permission: "0600"
```

Per-device sections inherit every key from ``defaults``. Environment
variables (``SETCONF_COMMAND_TIMEOUT`` etc.) override both.
"""
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SETCONF_"
DEFAULT_FILE_PERMISSION = 0o644


def parse_permission(value) -> int:
    """Accept 0o644, "0644" or "644" style permissions."""
    if isinstance(value, int) and not isinstance(value, bool):
        mode = value
    elif isinstance(value, str):
        try:
            mode = int(value.strip(), 8)
        except ValueError:
            raise ConfigError(f"Invalid file permission: {value!r}") from None
    else:
        raise ConfigError(f"Invalid file permission: {value!r}")
    if not 0 <= mode <= 0o777:
        raise ConfigError(f"Invalid file permission: {oct(mode)}")
    return mode


@dataclass
class EngineSettings:
    """Tunables of one ConfigEngine."""
    command_timeout: float = 60.0       # per session call, seconds
    rollback_timeout: float = 30.0      # bound on the discard after a failure
    lock_attempts: int = 10
    lock_sleep: float = 10.0            # seconds between lock attempts
    strict_parsing: bool = False
    offline_set_file: Optional[str] = None
    offline_update: bool = False
    offline_delete: bool = False
    file_permission: int = DEFAULT_FILE_PERMISSION
    audit_dir: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError on invalid or inconsistent values."""
        self.file_permission = parse_permission(self.file_permission)
        for name in ("command_timeout", "rollback_timeout", "lock_sleep"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(f"Invalid {name}: {value!r}")
        # Timeouts bound every session call, rollback included
        for name in ("command_timeout", "rollback_timeout"):
            if getattr(self, name) == 0:
                raise ConfigError(f"Invalid {name}: must be greater than 0")
        if (isinstance(self.lock_attempts, bool) or not isinstance(self.lock_attempts, int)
                or self.lock_attempts < 1):
            raise ConfigError(f"Invalid lock_attempts: {self.lock_attempts!r}")
        if self.offline_update and not self.offline_set_file:
            raise ConfigError("offline_update requires offline_set_file")
        if self.offline_delete and not self.offline_set_file:
            raise ConfigError("offline_delete requires offline_set_file")

    @property
    def offline_create(self) -> bool:
        return bool(self.offline_set_file)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _find_config() -> Optional[str]:
    """Find the setconf.yaml config file, None if there is none."""
    search_paths = [
        Path.cwd() / "configs" / "setconf.yaml",
        Path.cwd() / "setconf.yaml",
        Path.home() / ".config" / "setconf" / "setconf.yaml",
        Path("/etc/setconf/setconf.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return str(path)
    return None


def _convert(name: str, raw: Any, target: Any) -> Any:
    """Convert a raw YAML/env value to the type of the dataclass default."""
    if raw is None:
        return None
    try:
        if name == "file_permission":
            return parse_permission(raw)
        if isinstance(target, bool):
            if isinstance(raw, bool):
                return raw
            return str(raw).strip().lower() in ("1", "true", "yes", "on")
        if isinstance(target, int):
            return int(raw)
        if isinstance(target, float):
            return float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from None
    return str(raw)


def _env_overrides() -> dict[str, str]:
    overrides = {}
    for f in fields(EngineSettings):
        value = os.environ.get(ENV_PREFIX + f.name.upper())
        if value is not None and value != "":
            overrides[f.name] = value
    return overrides


def load_settings(
    config_path: Optional[str] = None,
    device_id: Optional[str] = None,
    use_env: bool = True,
) -> EngineSettings:
    """
    Load engine settings.

    Args:
        config_path: YAML file; searched in the usual places when omitted
        device_id: Device section to merge over the defaults
        use_env: Apply SETCONF_* environment overrides

    Returns:
        Validated EngineSettings

    Raises:
        ConfigError: On unreadable files, unknown keys or invalid values
    """
    path = config_path or _find_config()
    config: dict = {}
    if path:
        try:
            with open(path) as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load settings from {path}: {e}") from e
        if not isinstance(config, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")
        logger.debug(f"Loaded settings from {path}")

    # Merge defaults into the device section
    raw = dict(config.get("defaults") or {})
    if device_id is not None:
        devices = config.get("devices") or {}
        if device_id in devices:
            raw.update(devices[device_id] or {})
        elif path:
            logger.warning(f"No settings section for device {device_id}, using defaults")

    if use_env:
        raw.update(_env_overrides())

    known = {f.name: f for f in fields(EngineSettings)}
    values = {}
    for name, value in raw.items():
        if name not in known:
            raise ConfigError(f"Unknown setting: {name}")
        default = known[name].default
        if name in ("offline_set_file", "audit_dir"):
            values[name] = None if value is None else str(value)
        else:
            values[name] = _convert(name, value, default)

    return EngineSettings(**values)
