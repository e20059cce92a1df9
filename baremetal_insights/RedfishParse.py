from datetime import datetime, timezone
from typing import Iterable, List, Optional

from baremetal_insights.errors import ResourceMissing
from baremetal_insights.models import HealthStatus, PowerState

# Checked in order, first hit wins. Name matching only: Redfish firmware
# inventory carries no reliable component category.
COMPONENT_KEYWORDS = [
    ('BIOS',    ('BIOS',)),
    ('BMC',     ('iDRAC', 'BMC')),
    ('NIC',     ('NIC', 'Network', 'Ethernet')),
    ('Storage', ('RAID', 'PERC', 'Storage')),
    ('Power',   ('PSU', 'Power')),
    ('CPLD',    ('CPLD',)),
]

INLET_SENSOR_NAMES = ('Inlet', 'Ambient', 'System Board Inlet')
MAIN_CHASSIS_TYPES = ('RackMount', 'Blade', 'StandAlone')


class RedfishParse:

    @staticmethod
    def contains(text, *substrs):
        text = text or ''
        return any(sub in text for sub in substrs)

    @staticmethod
    def classify_component(name):
        for component_type, keywords in COMPONENT_KEYWORDS:
            if RedfishParse.contains(name, *keywords):
                return component_type
        return 'Other'

    @staticmethod
    def parse_health(resource) -> HealthStatus:
        """Read Status.Health off a Redfish resource; anything unexpected is Unknown."""
        status = (resource or {}).get('Status') or {}
        health = status.get('Health')
        for h in (HealthStatus.OK, HealthStatus.WARNING, HealthStatus.CRITICAL):
            if health == h.value:
                return h
        return HealthStatus.UNKNOWN

    @staticmethod
    def parse_power_state(value) -> PowerState:
        if value == 'On':
            return PowerState.ON
        if value == 'Off':
            return PowerState.OFF
        return PowerState.UNKNOWN

    @staticmethod
    def parse_severity(value) -> HealthStatus:
        if value == 'Critical':
            return HealthStatus.CRITICAL
        if value == 'Warning':
            return HealthStatus.WARNING
        return HealthStatus.OK

    @staticmethod
    def aggregate_health(statuses: Iterable[HealthStatus]) -> HealthStatus:
        """
        Worst-of reduction.

        Critical beats Warning beats Unknown beats OK. No readings at all is
        Unknown: we know nothing, which is not the same as healthy.
        """
        seen = False
        worst = HealthStatus.OK
        for s in statuses:
            seen = True
            if s == HealthStatus.CRITICAL:
                return HealthStatus.CRITICAL
            if s == HealthStatus.WARNING:
                worst = HealthStatus.WARNING
            elif s == HealthStatus.UNKNOWN and worst == HealthStatus.OK:
                worst = HealthStatus.UNKNOWN
        if not seen:
            return HealthStatus.UNKNOWN
        return worst

    @staticmethod
    def parse_timestamp(value) -> datetime:
        """ISO8601 to an aware datetime. Controllers that send garbage get 'now'."""
        try:
            ts = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return datetime.now(timezone.utc)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    @staticmethod
    def is_inlet_sensor(name):
        return RedfishParse.contains(name, *INLET_SENSOR_NAMES)

    @staticmethod
    def link(resource, key):
        """Return the @odata.id under resource[key] or raise ResourceMissing."""
        ref = (resource or {}).get(key)
        if isinstance(ref, dict) and ref.get('@odata.id'):
            return ref['@odata.id']
        raise ResourceMissing(f'{key} not advertised')

    @staticmethod
    def pick_main_chassis(chassis: List[dict]) -> Optional[dict]:
        """The server chassis rather than an enclosure or backplane; first one if no type matches."""
        for ch in chassis:
            if ch.get('ChassisType') in MAIN_CHASSIS_TYPES:
                return ch
        return chassis[0] if chassis else None

    @staticmethod
    def as_int(value):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0
