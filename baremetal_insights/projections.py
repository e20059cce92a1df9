"""
Read-side views over the node store.

Pure functions of a node list; nothing here is cached or stored.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from baremetal_insights.models import HealthStatus, Node, PowerState, Severity


@dataclass
class UpdateSummary:
    component_type: str
    available_version: str
    affected_nodes: List[str] = field(default_factory=list)
    node_count: int = 0


@dataclass
class HealthCounts:
    healthy: int = 0
    warning: int = 0
    critical: int = 0


@dataclass
class PowerCounts:
    on: int = 0
    off: int = 0


@dataclass
class UpdateCounts:
    total: int = 0
    critical: int = 0
    recommended: int = 0
    optional: int = 0
    nodes_with_updates: int = 0


@dataclass
class DashboardStats:
    total_nodes: int
    health_summary: HealthCounts
    power_summary: PowerCounts
    updates_summary: UpdateCounts
    last_refresh: Optional[datetime] = None
    next_refresh: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("last_refresh", "next_refresh"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


def list_updates(nodes: Iterable[Node]) -> List[UpdateSummary]:
    """Group pending updates by (component type, available version)."""
    groups: Dict[Tuple[str, str], UpdateSummary] = {}
    for node in nodes:
        for fw in node.firmware:
            if not fw.needs_update:
                continue
            key = (fw.component_type, fw.available_version)
            summary = groups.get(key)
            if summary is None:
                summary = groups[key] = UpdateSummary(fw.component_type, fw.available_version)
            if node.name not in summary.affected_nodes:
                summary.affected_nodes.append(node.name)
                summary.node_count += 1
    return [groups[k] for k in sorted(groups)]


def dashboard(
    nodes: Iterable[Node],
    poll_interval: float = 1800.0,
    last_refresh: Optional[datetime] = None,
) -> DashboardStats:
    """Fleet counts by health, power state and pending update severity."""
    nodes = list(nodes)
    last_refresh = last_refresh or datetime.now(timezone.utc)
    stats = DashboardStats(
        total_nodes=len(nodes),
        health_summary=HealthCounts(),
        power_summary=PowerCounts(),
        updates_summary=UpdateCounts(),
        last_refresh=last_refresh,
        next_refresh=last_refresh + timedelta(seconds=poll_interval),
    )

    nodes_with_updates = set()
    for node in nodes:
        if node.health == HealthStatus.OK:
            stats.health_summary.healthy += 1
        elif node.health == HealthStatus.WARNING:
            stats.health_summary.warning += 1
        elif node.health == HealthStatus.CRITICAL:
            stats.health_summary.critical += 1

        if node.power_state == PowerState.ON:
            stats.power_summary.on += 1
        elif node.power_state == PowerState.OFF:
            stats.power_summary.off += 1

        for fw in node.firmware:
            if not fw.needs_update:
                continue
            stats.updates_summary.total += 1
            nodes_with_updates.add(node.name)
            if fw.severity == Severity.CRITICAL.value:
                stats.updates_summary.critical += 1
            elif fw.severity == Severity.RECOMMENDED.value:
                stats.updates_summary.recommended += 1
            elif fw.severity == Severity.OPTIONAL.value:
                stats.updates_summary.optional += 1

    stats.updates_summary.nodes_with_updates = len(nodes_with_updates)
    return stats
