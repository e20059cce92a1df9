from datetime import datetime, timedelta, timezone

from baremetal_insights.models import FirmwareComponent, HealthStatus, Node, PowerState
from baremetal_insights.projections import dashboard, list_updates


def fw(ctype, current, available, severity=""):
    return FirmwareComponent(ctype.lower(), ctype, current, available, True, ctype, severity)


def fleet():
    return [
        Node(name="a", health=HealthStatus.OK, power_state=PowerState.ON,
             firmware=[fw("BIOS", "2.18.1", "2.19.1", "Recommended"), fw("BMC", "7.00", "7.10", "Critical")]),
        Node(name="b", health=HealthStatus.WARNING, power_state=PowerState.OFF,
             firmware=[fw("BIOS", "2.17.0", "2.19.1", "Recommended"), fw("NIC", "22.5", "22.5")]),
        Node(name="c", health=HealthStatus.CRITICAL, power_state=PowerState.ON,
             firmware=[fw("NIC", "22.0", "", "")]),
        Node(name="d"),
    ]


def test_list_updates_groups_by_type_and_version():
    updates = list_updates(fleet())

    assert [(u.component_type, u.available_version, u.affected_nodes, u.node_count) for u in updates] == [
        ("BIOS", "2.19.1", ["a", "b"], 2),
        ("BMC", "7.10", ["a"], 1),
    ]


def test_list_updates_counts_a_node_once():
    node = Node(name="a", firmware=[fw("NIC", "1.0", "2.0"), fw("NIC", "1.1", "2.0")])
    updates = list_updates([node])
    assert updates[0].affected_nodes == ["a"]
    assert updates[0].node_count == 1


def test_dashboard_counts():
    last = datetime(2024, 1, 1, tzinfo=timezone.utc)
    stats = dashboard(fleet(), poll_interval=900, last_refresh=last)

    assert stats.total_nodes == 4
    assert (stats.health_summary.healthy, stats.health_summary.warning, stats.health_summary.critical) == (1, 1, 1)
    assert (stats.power_summary.on, stats.power_summary.off) == (2, 1)
    assert stats.updates_summary.total == 3
    assert stats.updates_summary.critical == 1
    assert stats.updates_summary.recommended == 2
    assert stats.updates_summary.optional == 0
    assert stats.updates_summary.nodes_with_updates == 2
    assert stats.next_refresh == last + timedelta(seconds=900)

    data = stats.to_dict()
    assert data["last_refresh"] == "2024-01-01T00:00:00+00:00"
    assert data["health_summary"] == {"healthy": 1, "warning": 1, "critical": 1}


def test_dashboard_empty_fleet():
    stats = dashboard([])
    assert stats.total_nodes == 0
    assert stats.last_refresh is not None
