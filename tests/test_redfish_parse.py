from datetime import datetime, timezone

import pytest

from baremetal_insights.RedfishParse import RedfishParse
from baremetal_insights.errors import ResourceMissing
from baremetal_insights.models import HealthStatus, PowerState

OK = HealthStatus.OK
WARNING = HealthStatus.WARNING
CRITICAL = HealthStatus.CRITICAL
UNKNOWN = HealthStatus.UNKNOWN


@pytest.mark.parametrize("statuses, expected", [
    ([OK, WARNING, OK], WARNING),
    ([OK, CRITICAL, WARNING], CRITICAL),
    ([], UNKNOWN),
    ([OK, OK], OK),
    ([OK, UNKNOWN], UNKNOWN),
    ([UNKNOWN, WARNING], WARNING),
])
def test_aggregate_health(statuses, expected):
    assert RedfishParse.aggregate_health(statuses) == expected


def test_aggregate_health_accepts_generators():
    assert RedfishParse.aggregate_health(s for s in [OK, WARNING]) == WARNING


@pytest.mark.parametrize("name, expected", [
    ("BIOS", "BIOS"),
    ("Integrated Dell Remote Access Controller iDRAC", "BMC"),
    ("BMC Firmware", "BMC"),
    ("Broadcom Gigabit Ethernet BCM5720", "NIC"),
    ("Intel(R) Ethernet 10G X710", "NIC"),
    ("PERC H730P Mini", "Storage"),
    ("Dell 13G PSU", "Power"),
    ("System CPLD", "CPLD"),
    ("Lifecycle Controller", "Other"),
    ("", "Other"),
    # first keyword group wins
    ("BIOS Power Profile", "BIOS"),
    ("Network RAID adapter", "NIC"),
])
def test_classify_component(name, expected):
    assert RedfishParse.classify_component(name) == expected


def test_parse_health():
    assert RedfishParse.parse_health({"Status": {"Health": "Critical"}}) == CRITICAL
    assert RedfishParse.parse_health({"Status": {"Health": None}}) == UNKNOWN
    assert RedfishParse.parse_health({"Status": {}}) == UNKNOWN
    assert RedfishParse.parse_health({}) == UNKNOWN
    assert RedfishParse.parse_health(None) == UNKNOWN


def test_parse_power_state():
    assert RedfishParse.parse_power_state("On") == PowerState.ON
    assert RedfishParse.parse_power_state("Off") == PowerState.OFF
    assert RedfishParse.parse_power_state("PoweringOn") == PowerState.UNKNOWN


def test_parse_severity_defaults_to_ok():
    assert RedfishParse.parse_severity("Critical") == CRITICAL
    assert RedfishParse.parse_severity("Warning") == WARNING
    assert RedfishParse.parse_severity("Informational") == OK
    assert RedfishParse.parse_severity(None) == OK


def test_parse_timestamp():
    ts = RedfishParse.parse_timestamp("2024-03-01T12:00:00Z")
    assert ts == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    naive = RedfishParse.parse_timestamp("2024-03-01T12:00:00")
    assert naive.tzinfo is not None

    before = datetime.now(timezone.utc)
    assert RedfishParse.parse_timestamp("garbage") >= before
    assert RedfishParse.parse_timestamp(None) >= before


def test_link():
    assert RedfishParse.link({"Thermal": {"@odata.id": "/x"}}, "Thermal") == "/x"
    with pytest.raises(ResourceMissing):
        RedfishParse.link({}, "Thermal")
    with pytest.raises(ResourceMissing):
        RedfishParse.link({"Thermal": {}}, "Thermal")


def test_pick_main_chassis():
    enclosure = {"ChassisType": "Enclosure"}
    blade = {"ChassisType": "Blade"}
    assert RedfishParse.pick_main_chassis([enclosure, blade]) is blade
    assert RedfishParse.pick_main_chassis([enclosure]) is enclosure
    assert RedfishParse.pick_main_chassis([]) is None


def test_inlet_sensor_names():
    assert RedfishParse.is_inlet_sensor("System Board Inlet Temp")
    assert RedfishParse.is_inlet_sensor("Ambient")
    assert not RedfishParse.is_inlet_sensor("CPU1 Temp")


def test_as_int():
    assert RedfishParse.as_int(41.9) == 41
    assert RedfishParse.as_int("12") == 12
    assert RedfishParse.as_int(None) == 0
    assert RedfishParse.as_int("n/a") == 0
    assert RedfishParse.as_int(float("inf")) == 0
    assert RedfishParse.as_int(float("nan")) == 0
