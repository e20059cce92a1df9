"""
In-memory state read by the query surface.

NodeStore holds the latest snapshot per node, EventStore a bounded history of
controller log entries across the fleet. Neither decides anything: the poller
owns every write. Both are rebuilt from scratch after a restart.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace
from typing import Deque, Dict, Iterable, List, Optional

from baremetal_insights.models import HealthEvent, Node


class NodeStore:
    """Thread-safe map of node name to its last snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._nodes: Dict[str, Node] = {}

    def set_node(self, node: Node) -> None:
        """Add or replace the snapshot for node.name."""
        with self._lock:
            self._nodes[node.name] = node

    def get_node(self, name: str) -> Optional[Node]:
        with self._lock:
            return self._nodes.get(name)

    def list_nodes(self) -> List[Node]:
        with self._lock:
            return list(self._nodes.values())

    def list_nodes_by_namespace(self, namespace: str = "") -> List[Node]:
        """Nodes in namespace; every node when namespace is empty."""
        with self._lock:
            if not namespace:
                return list(self._nodes.values())
            return [n for n in self._nodes.values() if n.namespace == namespace]

    def get_namespaces(self) -> List[str]:
        with self._lock:
            return sorted({n.namespace for n in self._nodes.values() if n.namespace})

    def delete_node(self, name: str) -> None:
        with self._lock:
            self._nodes.pop(name, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)


class EventStore:
    """
    Health events with a hard cap.

    Eviction follows insertion order, not event time: once max_size is
    reached the entries added first are dropped.
    """

    def __init__(self, max_size: int = 1000) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._lock = threading.Lock()
        self._events: Deque[HealthEvent] = deque(maxlen=max_size)

    def add_event(self, event: HealthEvent) -> None:
        with self._lock:
            self._events.append(event)

    def add_events(self, node_name: str, events: Iterable[HealthEvent]) -> None:
        """Append events reported by node_name, stamping the node on each."""
        with self._lock:
            for e in events:
                self._events.append(replace(e, node_name=node_name))

    def list_events(self, limit: int = 0, node_name: str = "") -> List[HealthEvent]:
        """
        Newest first by event timestamp.

        node_name filters before sorting, limit (0 = no limit) applies last.
        """
        with self._lock:
            result = [e for e in self._events if not node_name or e.node_name == node_name]

        result.sort(key=lambda e: e.timestamp, reverse=True)
        if limit > 0:
            result = result[:limit]
        return result

    def count(self) -> int:
        with self._lock:
            return len(self._events)
