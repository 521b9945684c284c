"""Configuration for the planner store: data directory, backups, planner.toml."""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_FILENAME = "planner.toml"

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off')


def default_data_dir() -> Path:
    """Return the platform data directory for the planner."""
    override = os.getenv('PLANNER_DATA_DIR')
    if override:
        return Path(override).expanduser()

    xdg_data_home = os.getenv('XDG_DATA_HOME')
    if xdg_data_home:
        return Path(xdg_data_home) / "planner"

    home = Path.home()
    if (home / "Library").exists():
        # macOS
        return home / "Library" / "Application Support" / "planner"

    return home / ".planner"


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


def _parse_count(name: str, value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid integer for {name}: {value!r}") from e
    if count < 0:
        raise ValueError(f"{name} must not be negative: {count}")
    return count


@dataclass
class PlannerConfig:
    """Settings used when opening an entity store."""

    data_dir: Path
    max_backups: int = 10
    backup_on_open: bool = True

    @property
    def backup_dir(self) -> Path:
        return self.data_dir / "backups"


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    with open(path, 'rb') as f:
        document = tomllib.load(f)
    return document.get('planner', {})


def load_config(data_dir: Optional[Path] = None) -> PlannerConfig:
    """
    Build a configuration from defaults, planner.toml and the environment.

    Later sources win: defaults < ``[planner]`` table of
    ``<data_dir>/planner.toml`` < ``PLANNER_MAX_BACKUPS`` /
    ``PLANNER_BACKUP_ON_OPEN``.
    """
    data_dir = Path(data_dir) if data_dir is not None else default_data_dir()
    config = PlannerConfig(data_dir=data_dir)

    settings = _read_toml(data_dir / CONFIG_FILENAME)
    if 'max_backups' in settings:
        config.max_backups = _parse_count('max_backups', settings['max_backups'])
    if 'backup_on_open' in settings:
        config.backup_on_open = _parse_bool('backup_on_open', settings['backup_on_open'])

    env_max = os.getenv('PLANNER_MAX_BACKUPS')
    if env_max:
        config.max_backups = _parse_count('PLANNER_MAX_BACKUPS', env_max)
    env_backup = os.getenv('PLANNER_BACKUP_ON_OPEN')
    if env_backup:
        config.backup_on_open = _parse_bool('PLANNER_BACKUP_ON_OPEN', env_backup)

    return config
