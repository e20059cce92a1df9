import logging
from typing import Callable, List, Optional, Sequence, Tuple

from baremetal_insights.RedfishParse import RedfishParse
from baremetal_insights.RemoteSession import RemoteSession
from baremetal_insights.errors import AuthenticationError, DataUnavailable, InsightsError, ResourceMissing
from baremetal_insights.models import (
    Credentials,
    FanReading,
    FirmwareComponent,
    HealthEvent,
    HealthRollup,
    HealthStatus,
    PowerDetail,
    PowerSummary,
    PSUReading,
    SystemInfo,
    ThermalDetail,
    ThermalReading,
    ThermalSummary,
)

logger = logging.getLogger(__name__)


class FallbackStrategy:
    """
    Ordered probes for one data domain, first non-empty answer wins.

    A probe that hits a missing resource just hands over to the next one.
    Transport and auth errors are not absorbed here.
    """

    def __init__(self, name: str, probes: Sequence[Callable]):
        self.name = name
        self.probes = list(probes)

    def resolve(self, rs: RemoteSession, resource: dict):
        for probe in self.probes:
            try:
                result = probe(rs, resource)
            except ResourceMissing as err:
                logger.debug('%s: %s via %s unavailable: %s', rs.mgmt, self.name, probe.__name__, err)
                continue
            if result:
                return result
        return None


def members(rs: RemoteSession, path: str, limit: int = 0) -> List[dict]:
    """Expand a Redfish collection, at most limit members (0 means all). Inline members are used as they are."""
    collection = rs.get_json(path)
    items = []
    for m in collection.get('Members', []):
        if limit > 0 and len(items) >= limit:
            break
        if set(m) - {'@odata.id'}:
            items.append(m)
        else:
            items.append(rs.get_json(m['@odata.id']))
    return items


# ---------- thermal probes (chassis) ----------
def modern_temperatures(rs, chassis) -> List[ThermalReading]:
    subsystem = rs.get_json(RedfishParse.link(chassis, 'ThermalSubsystem'))
    metrics = rs.get_json(RedfishParse.link(subsystem, 'ThermalMetrics'))
    # ThermalMetrics has no per-sensor status
    return [ThermalReading(name=t.get('DeviceName', ''), temp_c=RedfishParse.as_int(t.get('Reading')))
            for t in metrics.get('TemperatureReadingsCelsius') or []]


def legacy_temperatures(rs, chassis) -> List[ThermalReading]:
    thermal = rs.get_json(RedfishParse.link(chassis, 'Thermal'))
    return [ThermalReading(name=t.get('Name', ''), temp_c=RedfishParse.as_int(t.get('ReadingCelsius')),
                           status=RedfishParse.parse_health(t))
            for t in thermal.get('Temperatures') or []]


def modern_fans(rs, chassis) -> List[FanReading]:
    subsystem = rs.get_json(RedfishParse.link(chassis, 'ThermalSubsystem'))
    return [FanReading(name=f.get('Name', ''), rpm=RedfishParse.as_int((f.get('SpeedPercent') or {}).get('Reading')),
                       status=RedfishParse.parse_health(f))
            for f in members(rs, RedfishParse.link(subsystem, 'Fans'))]


def legacy_fans(rs, chassis) -> List[FanReading]:
    thermal = rs.get_json(RedfishParse.link(chassis, 'Thermal'))
    return [FanReading(name=f.get('Name') or f.get('FanName', ''), rpm=RedfishParse.as_int(f.get('Reading')),
                       status=RedfishParse.parse_health(f))
            for f in thermal.get('Fans') or []]


# ---------- power probes (chassis) ----------
def _psu_reading(psu) -> PSUReading:
    return PSUReading(name=psu.get('Name', ''), status=RedfishParse.parse_health(psu),
                      capacity_w=RedfishParse.as_int(psu.get('PowerCapacityWatts')))


def modern_psus(rs, chassis) -> List[PSUReading]:
    subsystem = rs.get_json(RedfishParse.link(chassis, 'PowerSubsystem'))
    return [_psu_reading(p) for p in members(rs, RedfishParse.link(subsystem, 'PowerSupplies'))]


def legacy_psus(rs, chassis) -> List[PSUReading]:
    power = rs.get_json(RedfishParse.link(chassis, 'Power'))
    return [_psu_reading(p) for p in power.get('PowerSupplies') or []]


def modern_power_draw(rs, chassis) -> int:
    metrics = rs.get_json(RedfishParse.link(chassis, 'EnvironmentMetrics'))
    return RedfishParse.as_int((metrics.get('PowerWatts') or {}).get('Reading'))


def legacy_power_draw(rs, chassis) -> int:
    power = rs.get_json(RedfishParse.link(chassis, 'Power'))
    control = power.get('PowerControl') or []
    if not control:
        return 0
    return RedfishParse.as_int(control[0].get('PowerConsumedWatts'))


TEMPERATURES = FallbackStrategy('temperatures', [modern_temperatures, legacy_temperatures])
FANS = FallbackStrategy('fans', [modern_fans, legacy_fans])
POWER_SUPPLIES = FallbackStrategy('power supplies', [modern_psus, legacy_psus])
POWER_DRAW = FallbackStrategy('power draw', [modern_power_draw, legacy_power_draw])

# System sub-resources rolled into HealthRollup
SYSTEM_SUBSYSTEMS = [
    ('processors', 'Processors'),
    ('memory', 'Memory'),
    ('storage', 'Storage'),
    ('network', 'EthernetInterfaces'),
]

SEL_LOG_IDS = ('Sel', 'SEL')


class RedfishCmds:
    """
    Read-only Redfish queries against one controller at a time.

    Every call logs in, reads what it needs and logs out again. Errors come
    back as TransportError/AuthenticationError (host unreachable or rejected)
    or DataUnavailable (reachable, but nothing to report).
    """

    def __init__(self, timeout=30, http_factory=None):
        self.timeout = timeout
        self.http_factory = http_factory

    def connect(self, bmc_address: str, credentials: Credentials) -> RemoteSession:
        http = self.http_factory() if self.http_factory else None
        return RemoteSession(bmc_address, credentials.username, credentials.password,
                             endpoints['create_session'], timeout=self.timeout, http=http)

    def get_inventory(self, bmc_address: str, credentials: Credentials) -> Tuple[List[FirmwareComponent], Optional[SystemInfo]]:
        with self.connect(bmc_address, credentials) as rs:
            systems = members(rs, endpoints['systems'])
            info = None
            if systems:
                system = systems[0]
                info = SystemInfo(
                    model=system.get('Model') or '',
                    manufacturer=system.get('Manufacturer') or '',
                    service_tag=system.get('SKU') or '',
                    serial_number=system.get('SerialNumber') or '',
                    power_state=RedfishParse.parse_power_state(system.get('PowerState')),
                )
            inventory = members(rs, endpoints['firmware_inventory'])
            return self.parse_firmware_inventory(inventory), info

    @staticmethod
    def parse_firmware_inventory(inventory: List[dict]) -> List[FirmwareComponent]:
        components = []
        for fw in inventory:
            name = fw.get('Name') or ''
            components.append(FirmwareComponent(
                id=fw.get('Id') or '',
                name=name,
                current_version=fw.get('Version') or '',
                updateable=bool(fw.get('Updateable', False)),
                component_type=RedfishParse.classify_component(name),
            ))
        return components

    def get_health_rollup(self, bmc_address: str, credentials: Credentials) -> Tuple[HealthRollup, HealthStatus]:
        with self.connect(bmc_address, credentials) as rs:
            systems = members(rs, endpoints['systems'])
            if not systems:
                raise DataUnavailable(f'{bmc_address}: no systems found')
            system = systems[0]
            overall = RedfishParse.parse_health(system)
            rollup = HealthRollup()

            for attr, key in SYSTEM_SUBSYSTEMS:
                try:
                    items = members(rs, RedfishParse.link(system, key))
                except AuthenticationError:
                    raise
                except InsightsError as err:
                    logger.info('%s: failed to get %s: %s', bmc_address, key, err)
                    continue
                if items:
                    setattr(rollup, attr, RedfishParse.aggregate_health(RedfishParse.parse_health(i) for i in items))

            try:
                self._chassis_health(rs, rollup)
            except AuthenticationError:
                raise
            except InsightsError as err:
                logger.info('%s: failed to get chassis health: %s', bmc_address, err)

            return rollup, overall

    @staticmethod
    def _chassis_health(rs: RemoteSession, rollup: HealthRollup) -> None:
        chassis = members(rs, endpoints['chassis'])
        if not chassis:
            return
        main = chassis[0]
        fans = FANS.resolve(rs, main)
        if fans:
            rollup.fans = RedfishParse.aggregate_health(f.status for f in fans)
        psus = POWER_SUPPLIES.resolve(rs, main)
        if psus:
            rollup.power_supplies = RedfishParse.aggregate_health(p.status for p in psus)

    def get_thermal_data(self, bmc_address: str, credentials: Credentials) -> Tuple[ThermalDetail, ThermalSummary]:
        with self.connect(bmc_address, credentials) as rs:
            main = RedfishParse.pick_main_chassis(members(rs, endpoints['chassis']))
            if main is None:
                raise DataUnavailable(f'{bmc_address}: no chassis found')

            detail = ThermalDetail(
                temperatures=TEMPERATURES.resolve(rs, main) or [],
                fans=FANS.resolve(rs, main) or [],
            )
            if not detail.temperatures and not detail.fans:
                raise DataUnavailable(f'{bmc_address}: thermal data not available')

        return detail, self.summarize_thermal(detail)

    @staticmethod
    def summarize_thermal(detail: ThermalDetail) -> ThermalSummary:
        summary = ThermalSummary()
        for t in detail.temperatures:
            summary.max_temp_c = max(summary.max_temp_c, t.temp_c)
            if RedfishParse.is_inlet_sensor(t.name):
                summary.inlet_temp_c = t.temp_c
        summary.fan_count = len(detail.fans)
        summary.fans_healthy = sum(1 for f in detail.fans if f.status == HealthStatus.OK)
        if summary.fans_healthy < summary.fan_count:
            summary.status = HealthStatus.WARNING
        return summary

    def get_power_data(self, bmc_address: str, credentials: Credentials) -> Tuple[PowerDetail, PowerSummary]:
        with self.connect(bmc_address, credentials) as rs:
            main = RedfishParse.pick_main_chassis(members(rs, endpoints['chassis']))
            if main is None:
                raise DataUnavailable(f'{bmc_address}: no chassis found')

            detail = PowerDetail(
                psus=POWER_SUPPLIES.resolve(rs, main) or [],
                current_watts=POWER_DRAW.resolve(rs, main) or 0,
            )
            if not detail.psus and not detail.current_watts:
                raise DataUnavailable(f'{bmc_address}: power data not available')

        summary = self.summarize_power(detail)
        detail.redundancy = summary.redundancy
        return detail, summary

    @staticmethod
    def summarize_power(detail: PowerDetail) -> PowerSummary:
        healthy = sum(1 for p in detail.psus if p.status == HealthStatus.OK)
        summary = PowerSummary(current_watts=detail.current_watts, psu_count=len(detail.psus), psus_healthy=healthy)
        if healthy < len(detail.psus):
            summary.redundancy = 'Lost'
            summary.status = HealthStatus.CRITICAL
        return summary

    def get_events(self, bmc_address: str, credentials: Credentials, limit: int = 50) -> List[HealthEvent]:
        """System event log entries in controller order, at most limit (0 means all)."""
        with self.connect(bmc_address, credentials) as rs:
            managers = members(rs, endpoints['managers'])
            if not managers:
                raise DataUnavailable(f'{bmc_address}: no managers found')

            events = []
            for ls in members(rs, RedfishParse.link(managers[0], 'LogServices')):
                if ls.get('Id') not in SEL_LOG_IDS:
                    continue
                remaining = limit - len(events) if limit > 0 else 0
                if limit > 0 and remaining <= 0:
                    break
                try:
                    entries = members(rs, RedfishParse.link(ls, 'Entries'), remaining)
                except ResourceMissing as err:
                    logger.debug('%s: %s', bmc_address, err)
                    continue
                for entry in entries:
                    if limit > 0 and len(events) >= limit:
                        break
                    events.append(HealthEvent(
                        id=str(entry.get('Id', '')),
                        timestamp=RedfishParse.parse_timestamp(entry.get('Created')),
                        severity=RedfishParse.parse_severity(entry.get('Severity')),
                        message=entry.get('Message') or '',
                    ))
            return events


endpoints = {
    'create_session'        : '/SessionService/Sessions',
    'systems'               : '/Systems',
    'chassis'               : '/Chassis',
    'managers'              : '/Managers',
    'firmware_inventory'    : '/UpdateService/FirmwareInventory',
}
