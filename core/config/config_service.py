"""Typed, layered configuration loader with precedence handling."""
from __future__ import annotations

import os
import configparser
from dataclasses import dataclass, fields
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Optional, Tuple

# --------------------------------------------------------------------------- #
#  Paths & default definitions
# --------------------------------------------------------------------------- #

def _find_project_root() -> Path:
    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / "core").is_dir() and (parent / "documents").is_dir():
            return parent
    return here.parent

PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "core" / "config"
DEFAULTS_INI = CONFIG_DIR / "defaults.ini"
MACHINE_INI = CONFIG_DIR / "config.ini"

ENV_PREFIX = "LETTERFLOW_"


_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "Database": {
        "path": (PROJECT_ROOT / "databases" / "letterflow.db").as_posix(),
    },
    "Storage": {
        "root": (PROJECT_ROOT / "data" / "storage").as_posix(),
        "encryption_keys": "",
    },
    "Workflow": {
        "max_reviewers": "5",
        "final_approver_order": "999",
        "rejected_routes_to_author": "false",
        "require_qr_marker": "false",
        "id_prefix": "LTR",
        "id_pattern": "{YYYY}-{seq:04d}",
    },
    "Placement": {
        "edge_tolerance": "0.1",
        "zoom_step": "0.2",
        "min_scale": "0.4",
        "max_scale": "3.0",
        "signature_width": "100",
        "signature_height": "40",
        "stamp_width": "60",
        "stamp_height": "60",
        "qr_marker_width": "50",
        "qr_marker_height": "50",
    },
    "Compositor": {
        "fetch_workers": "4",
    },
}


# --------------------------------------------------------------------------- #
#  Datamodels
# --------------------------------------------------------------------------- #

@dataclass
class DatabaseConfig:
    path: Path


@dataclass
class StorageConfig:
    root: Path
    encryption_keys: str = ""

    @property
    def key_list(self) -> list[str]:
        return [k.strip() for k in self.encryption_keys.split(",") if k.strip()]


@dataclass
class WorkflowConfig:
    max_reviewers: int = 5
    final_approver_order: int = 999
    rejected_routes_to_author: bool = False
    require_qr_marker: bool = False
    id_prefix: str = "LTR"
    id_pattern: str = "{YYYY}-{seq:04d}"


@dataclass
class PlacementConfig:
    edge_tolerance: float = 0.1
    zoom_step: float = 0.2
    min_scale: float = 0.4
    max_scale: float = 3.0
    signature_width: float = 100.0
    signature_height: float = 40.0
    stamp_width: float = 60.0
    stamp_height: float = 60.0
    qr_marker_width: float = 50.0
    qr_marker_height: float = 50.0


@dataclass
class CompositorConfig:
    fetch_workers: int = 4


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

def _cp_to_dict(cp: configparser.ConfigParser) -> Dict[str, Dict[str, Any]]:
    data: Dict[str, Dict[str, Any]] = {}
    for section in cp.sections():
        data[section] = {k: v for k, v in cp.items(section)}
    return data


def _read_ini(path: Path) -> Dict[str, Dict[str, Any]]:
    cp = configparser.ConfigParser()
    cp.read(path, encoding="utf-8")
    return _cp_to_dict(cp)


def _apply(target: Dict[str, Dict[str, Any]], source: Dict[str, Dict[str, Any]],
           layer: str, origin: str,
           sources: Dict[Tuple[str, str], Dict[str, str]]) -> None:
    for section, items in source.items():
        sec = target.setdefault(section, {})
        for key, value in items.items():
            sec[key] = value
            sources[(section, key)] = {"layer": layer, "source": origin}


def _cast(value: Any, typ: Any) -> Any:
    # dataclass annotations are strings under `from __future__ import annotations`
    name = typ if isinstance(typ, str) else getattr(typ, "__name__", str(typ))
    if name == "Path":
        return Path(str(value)).expanduser()
    if name == "bool":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    if name == "int":
        return int(value)
    if name == "float":
        return float(value)
    return str(value)


def _build_dataclass(cls: type, data: Dict[str, Any]) -> Any:
    kwargs = {}
    for field in fields(cls):
        if field.name in data:
            kwargs[field.name] = _cast(data[field.name], field.type)
    return cls(**kwargs)


def _env_overlays(environ: Optional[Dict[str, str]] = None) -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for env_key, value in (os.environ if environ is None else environ).items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        remainder = env_key[len(ENV_PREFIX):]
        parts = remainder.split("__", 1)
        if len(parts) != 2:
            continue
        section, key = parts
        section = section.title()
        key = key.lower()
        result.setdefault(section, {})[key] = value
    return result


def _user_config_path() -> Path:
    if os.name == "nt":
        appdata = os.environ.get("APPDATA") or (Path.home() / "AppData" / "Roaming")
        return Path(appdata) / "LetterFlow" / "config.ini"
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "letterflow" / "config.ini"


# --------------------------------------------------------------------------- #
#  ConfigService
# --------------------------------------------------------------------------- #


class ConfigService:
    """Facade merging layered configuration with type safety."""

    def __init__(
        self,
        *,
        defaults_ini: Optional[Path] = None,
        machine_ini: Optional[Path] = None,
        user_ini: Optional[Path] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> None:
        self._lock = RLock()
        self._defaults_ini = Path(defaults_ini) if defaults_ini else DEFAULTS_INI
        self._machine_ini = Path(machine_ini) if machine_ini else MACHINE_INI
        self._user_ini = Path(user_ini) if user_ini else _user_config_path()
        self._environ = environ
        self.reload()

    # ------------------------------------------------------------------ #
    def reload(self) -> None:
        with self._lock:
            merged: Dict[str, Dict[str, Any]] = {}
            sources: Dict[Tuple[str, str], Dict[str, str]] = {}

            # Layer 0: embedded defaults
            _apply(merged, _DEFAULTS, "code", "embedded", sources)

            # Layer 1: defaults.ini
            if self._defaults_ini.exists():
                _apply(merged, _read_ini(self._defaults_ini), "defaults.ini", str(self._defaults_ini), sources)

            # Layer 2: environment variables
            _apply(merged, _env_overlays(self._environ), "env", "os.environ", sources)

            # Layer 3: machine config
            if self._machine_ini.exists():
                _apply(merged, _read_ini(self._machine_ini), "machine", str(self._machine_ini), sources)

            # Layer 4: user overrides
            if self._user_ini.exists():
                _apply(merged, _read_ini(self._user_ini), "user", str(self._user_ini), sources)

            self._merged = merged
            self._sources = sources

            self.database = _build_dataclass(DatabaseConfig, merged.get("Database", {}))
            self.storage = _build_dataclass(StorageConfig, merged.get("Storage", {}))
            self.workflow = _build_dataclass(WorkflowConfig, merged.get("Workflow", {}))
            self.placement = _build_dataclass(PlacementConfig, merged.get("Placement", {}))
            self.compositor = _build_dataclass(CompositorConfig, merged.get("Compositor", {}))

    # ------------------------------------------------------------------ #
    def get(self, section: str, key: str, *, cast: Callable[[Any], Any] | type = str) -> Any:
        val = self._merged.get(section, {}).get(key)
        if val is None:
            return None
        if isinstance(cast, type):
            return _cast(val, cast)
        return cast(val)

    def meta_source(self, section: str, key: str) -> Dict[str, str] | None:
        return self._sources.get((section, key))


_instance: Optional[ConfigService] = None
_instance_lock = RLock()


def get_config_service() -> ConfigService:
    """Process-wide instance, created on first use."""
    global _instance
    if _instance is None:
        with _instance_lock:
            if _instance is None:
                _instance = ConfigService()
    return _instance
