#!/usr/bin/env python3

"""
config.py

Configuration loading for the mailreconcile package.

Supports:
- TOML (preferred) using stdlib tomllib (Python 3.11+) or the tomli package
- INI using configparser

Precedence:
1. CLI --config <path>
2. ./mailreconcile.toml
3. ./mailreconcile.ini
4. ~/.config/mailreconcile.toml
5. ~/.config/mailreconcile.ini
6. /etc/mailreconcile.toml
7. /etc/mailreconcile.ini

Stores are declared in TOML as an array of tables:

    [[stores]]
    name = "Mailbox"
    path = "/srv/mail/live"

and in INI as one section per store:

    [store.Mailbox]
    path = /srv/mail/live
"""

from __future__ import annotations

import configparser
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class StoreConfig:
    name: str
    path: Path


@dataclass
class Settings:
    # Core paths
    output_dir: Path
    log_path: Path

    # Engine
    max_depth: int
    copy_retries: int
    copy_retry_delay: float

    # Logging
    log_level: str
    rotate_by_time: bool
    max_log_files: int
    max_log_size: int
    status_interval: int

    stores: List[StoreConfig] = field(default_factory=list)


DEFAULT_LOCATIONS = [
    Path("./mailreconcile.toml"),
    Path("./mailreconcile.ini"),
    Path(os.path.expanduser("~/.config/mailreconcile.toml")),
    Path(os.path.expanduser("~/.config/mailreconcile.ini")),
    Path("/etc/mailreconcile.toml"),
    Path("/etc/mailreconcile.ini"),
]

INI_SECTION = "mailreconcile"
INI_STORE_PREFIX = "store."


def _load_toml(path: Path) -> Dict[str, Any]:
    # Prefer stdlib tomllib (3.11+), else fallback to third-party tomli if available.
    try:
        import tomllib  # type: ignore
        loader = tomllib.load
    except ImportError:
        try:
            import tomli  # type: ignore
            loader = tomli.load
        except ImportError:
            raise RuntimeError(
                f"TOML config {path} requested but no TOML parser available. "
                f"Install Python 3.11+ or the 'tomli' package, or use an INI config."
            )

    with open(path, "rb") as f:
        data = loader(f)
    return data


def _load_ini(path: Path) -> Dict[str, Any]:
    cp = configparser.ConfigParser()
    # keep store names as written
    cp.optionxform = str  # type: ignore[assignment]
    cp.read(path, encoding="utf-8")
    data: Dict[str, Any] = {}

    if INI_SECTION not in cp:
        raise RuntimeError(f"INI config {path} must have a [{INI_SECTION}] section")

    sec = cp[INI_SECTION]
    for k in sec:
        data[k.lower()] = sec[k]

    stores = []
    for name in cp.sections():
        if not name.startswith(INI_STORE_PREFIX):
            continue
        store_sec = cp[name]
        stores.append({"name": name[len(INI_STORE_PREFIX):], "path": store_sec.get("path", "")})
    if stores:
        data["stores"] = stores
    return data


def _coerce_bool(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return default


def _coerce_int(v: Any, default: int) -> int:
    if v is None:
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _coerce_float(v: Any, default: float) -> float:
    if v is None:
        return default
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _parse_stores(raw: Any) -> List[StoreConfig]:
    if not raw:
        return []
    if not isinstance(raw, list):
        raise RuntimeError("'stores' must be a list of {name, path} entries")
    stores: List[StoreConfig] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict) or not entry.get("path"):
            raise RuntimeError(f"Store entry #{i} needs at least a 'path'")
        path = Path(os.path.expanduser(str(entry["path"])))
        name = str(entry.get("name") or path.name)
        stores.append(StoreConfig(name=name, path=path))
    return stores


def load_settings(config_path: Optional[Path] = None) -> Settings:
    data: Dict[str, Any] = {}

    source_path: Optional[Path] = None

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        source_path = config_path
    else:
        for p in DEFAULT_LOCATIONS:
            if p.exists():
                source_path = p
                break

    if source_path is None:
        sys.stderr.write(
            "Warning: no config file found. Using built-in defaults.\n"
        )
    else:
        if source_path.suffix.lower() == ".toml":
            data = _load_toml(source_path)
        else:
            data = _load_ini(source_path)

    # Accept either flat keys or keys nested one level ([paths], [engine], [logging])
    def pick(*keys: str, default: Any = None) -> Any:
        for k in keys:
            if k in data:
                return data[k]
        for k in keys:
            parts = k.split(".")
            if len(parts) == 2:
                top, sub = parts
                if top in data and isinstance(data[top], dict):
                    if sub in data[top]:
                        return data[top][sub]
        return default

    output_dir = Path(pick("output_dir", "paths.output_dir", default="./reports"))
    log_path = Path(pick("log_path", "paths.log_path", default="./logs/mailreconcile.log"))

    max_depth = _coerce_int(pick("max_depth", "engine.max_depth", default=64), 64)
    copy_retries = max(1, _coerce_int(pick("copy_retries", "engine.copy_retries", default=3), 3))
    copy_retry_delay = max(0.0, _coerce_float(pick("copy_retry_delay", "engine.copy_retry_delay", default=2.0), 2.0))

    log_level = str(pick("log_level", "logging.log_level", default="INFO")).upper()
    rotate_by_time = _coerce_bool(pick("rotate_by_time", "logging.rotate_by_time", default=True), True)
    max_log_files = _coerce_int(pick("max_log_files", "logging.max_log_files", default=7), 7)
    max_log_size = _coerce_int(pick("max_log_size", "logging.max_log_size", default=10 * 1024 * 1024),
                               10 * 1024 * 1024)
    status_interval = _coerce_int(pick("status_interval", "logging.status_interval", default=60), 60)

    stores = _parse_stores(pick("stores", default=[]))

    return Settings(
        output_dir=output_dir,
        log_path=log_path,
        max_depth=max_depth,
        copy_retries=copy_retries,
        copy_retry_delay=copy_retry_delay,
        log_level=log_level,
        rotate_by_time=rotate_by_time,
        max_log_files=max_log_files,
        max_log_size=max_log_size,
        status_interval=status_interval,
        stores=stores,
    )
