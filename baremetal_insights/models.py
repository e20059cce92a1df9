"""
Shared data structures.

Everything the poller writes into the stores is a plain dataclass so the read
side can serialize it with to_dict() without knowing Redfish.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class HealthStatus(str, Enum):
    OK = "OK"
    WARNING = "Warning"
    CRITICAL = "Critical"
    UNKNOWN = "Unknown"


class PowerState(str, Enum):
    ON = "On"
    OFF = "Off"
    UNKNOWN = "Unknown"


class NodeStatus(str, Enum):
    UP_TO_DATE = "up-to-date"
    NEEDS_UPDATE = "needs-update"
    UNKNOWN = "unknown"
    AUTH_FAILED = "auth-failed"


class Severity(str, Enum):
    CRITICAL = "Critical"
    RECOMMENDED = "Recommended"
    OPTIONAL = "Optional"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class Host:
    """One discovered server. bmc_address is a bare host name or IP."""

    name: str
    namespace: str
    bmc_address: str
    credentials: Credentials


@dataclass
class FirmwareComponent:
    id: str
    name: str
    current_version: str
    available_version: str = ""
    updateable: bool = False
    component_type: str = "Other"
    severity: str = ""

    @property
    def needs_update(self) -> bool:
        """True when the catalog knows a version and it differs from ours."""
        return self.available_version != "" and self.available_version != self.current_version


@dataclass
class SystemInfo:
    model: str = ""
    manufacturer: str = ""
    service_tag: str = ""
    serial_number: str = ""
    power_state: PowerState = PowerState.UNKNOWN


@dataclass
class HealthRollup:
    processors: HealthStatus = HealthStatus.UNKNOWN
    memory: HealthStatus = HealthStatus.UNKNOWN
    power_supplies: HealthStatus = HealthStatus.UNKNOWN
    fans: HealthStatus = HealthStatus.UNKNOWN
    storage: HealthStatus = HealthStatus.UNKNOWN
    network: HealthStatus = HealthStatus.UNKNOWN


@dataclass
class ThermalReading:
    name: str
    temp_c: int
    status: HealthStatus = HealthStatus.OK


@dataclass
class FanReading:
    name: str
    rpm: int
    status: HealthStatus = HealthStatus.UNKNOWN


@dataclass
class ThermalDetail:
    temperatures: List[ThermalReading] = field(default_factory=list)
    fans: List[FanReading] = field(default_factory=list)


@dataclass
class ThermalSummary:
    inlet_temp_c: int = 0
    max_temp_c: int = 0
    fan_count: int = 0
    fans_healthy: int = 0
    status: HealthStatus = HealthStatus.OK


@dataclass
class PSUReading:
    name: str
    status: HealthStatus = HealthStatus.UNKNOWN
    capacity_w: int = 0


@dataclass
class PowerDetail:
    psus: List[PSUReading] = field(default_factory=list)
    current_watts: int = 0
    redundancy: str = ""


@dataclass
class PowerSummary:
    current_watts: int = 0
    psu_count: int = 0
    psus_healthy: int = 0
    redundancy: str = "Full"
    status: HealthStatus = HealthStatus.OK


@dataclass
class HealthEvent:
    id: str
    timestamp: datetime
    severity: HealthStatus
    message: str
    node_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class CatalogEntry:
    component_id: str = ""
    component_type: str = ""
    system_model_id: str = ""
    version: str = ""
    release_date: str = ""
    criticality: str = ""  # "Critical", "Recommended", "Optional"
    download_url: str = ""
    file_name: str = ""
    size_mb: int = 0


def catalog_key(system_model: str, component_type: str) -> str:
    """Lookup key for catalog entries."""
    return f"{system_model}|{component_type}"


@dataclass
class Node:
    """Snapshot of one host as of its last poll. Replaced wholesale each time."""

    name: str
    namespace: str = ""
    bmc_address: str = ""
    model: str = ""
    manufacturer: str = ""
    service_tag: str = ""
    power_state: PowerState = PowerState.UNKNOWN
    last_scanned: Optional[datetime] = None
    status: NodeStatus = NodeStatus.UNKNOWN
    health: HealthStatus = HealthStatus.UNKNOWN
    firmware: List[FirmwareComponent] = field(default_factory=list)
    firmware_count: int = 0
    updates_available: int = 0
    health_rollup: Optional[HealthRollup] = None
    thermal_summary: Optional[ThermalSummary] = None
    power_summary: Optional[PowerSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        data = _jsonable(asdict(self))
        for fw, comp in zip(data["firmware"], self.firmware):
            fw["needs_update"] = comp.needs_update
        return data


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value
