"""
Settings.

Defaults, then the [insights] section of an INI file, then environment
variables. The command line applies its flags on top.
"""

from __future__ import annotations

import configparser
import os
import re
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from baremetal_insights.catalog import DEFAULT_CATALOG_URL
from baremetal_insights.errors import ConfigError
from baremetal_insights.site_creds import DEFAULT_CRYPT_PATH

SECTION = "insights"

DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$")
DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}
TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")

# fields with a floor above zero
MINIMUMS = {"event_capacity": 1}


@dataclass
class Settings:
    poll_interval: float = 1800.0
    catalog_url: str = DEFAULT_CATALOG_URL
    catalog_ttl: float = 86400.0
    event_capacity: int = 1000
    event_fetch_limit: int = 50
    request_timeout: float = 30.0
    max_workers: int = 0
    hosts_file: str = ""
    keyring_master: str = ""
    keyring_file: str = DEFAULT_CRYPT_PATH
    metrics_port: int = 0
    catalog_enabled: bool = True

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        settings = cls()
        if path:
            settings.apply(read_ini(path), source=path)
        env = os.environ if environ is None else environ
        settings.apply({f.name: env[f.name.upper()] for f in fields(cls) if f.name.upper() in env}, source="environment")
        return settings

    def apply(self, values: Mapping[str, str], source: str = "") -> None:
        """Set fields from raw strings, converting by field type."""
        for f in fields(self):
            if f.name not in values:
                continue
            raw = values[f.name]
            default = getattr(type(self), f.name)
            try:
                if isinstance(default, bool):
                    value = parse_bool(raw)
                elif isinstance(default, float):
                    value = parse_duration(raw)
                elif isinstance(default, int):
                    value = int(raw)
                else:
                    value = str(raw)
            except ValueError as err:
                raise ConfigError(f"{source}: invalid {f.name} {raw!r}: {err}") from err
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
                raise ConfigError(f"{source}: {f.name} must not be negative")
            if f.name in MINIMUMS and value < MINIMUMS[f.name]:
                raise ConfigError(f"{source}: {f.name} must be at least {MINIMUMS[f.name]}")
            setattr(self, f.name, value)


def read_ini(path: str) -> Mapping[str, str]:
    parser = configparser.RawConfigParser()
    parser.optionxform = str
    try:
        with open(os.path.expanduser(path), encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as err:
        raise ConfigError(f"cannot read config {path}: {err}") from err
    if not parser.has_section(SECTION):
        return {}
    return {k.lower(): v for k, v in parser.items(SECTION)}


def parse_duration(value) -> float:
    """Seconds, or a number with an s/m/h/d suffix: 90, 30s, 15m, 24h."""
    if isinstance(value, (int, float)):
        return float(value)
    m = DURATION_RE.match(str(value))
    if not m:
        raise ValueError("expected seconds or a duration like 30s, 15m, 24h")
    return float(m.group(1)) * DURATION_UNITS[m.group(2)]


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    v = str(value).strip().lower()
    if v in TRUE_VALUES:
        return True
    if v in FALSE_VALUES:
        return False
    raise ValueError("expected true/false")
