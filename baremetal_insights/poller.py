"""
Fleet poll loop.

One cycle: refresh the catalog if stale, ask the discoverer for hosts, poll
every host in parallel and wait for all of them. The catalog is settled
before the first host is polled, so every host in a cycle is compared
against the same catalog.

A host that cannot be reached is stored as Unknown and the cycle moves on.
Only a failed discovery abandons a cycle, since without a host list there is
nothing to mark.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from baremetal_insights.RedfishCmds import RedfishCmds
from baremetal_insights.catalog import CatalogService
from baremetal_insights.discovery import Discoverer, is_dell_hardware
from baremetal_insights.errors import CatalogError, DiscoveryError, InsightsError
from baremetal_insights.metrics import MetricsSink, NullMetrics
from baremetal_insights.models import FirmwareComponent, Host, Node, NodeStatus
from baremetal_insights.store import EventStore, NodeStore

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 50


@dataclass(frozen=True)
class CycleStats:
    started: datetime
    finished: datetime
    hosts: int


class Poller:
    """
    Drives poll cycles at a fixed interval.

    max_workers caps concurrent host polls; 0 polls every discovered host at
    once, which is fine for a few hundred hosts but not for thousands.
    """

    def __init__(
        self,
        discoverer: Discoverer,
        client: RedfishCmds,
        store: NodeStore,
        event_store: Optional[EventStore] = None,
        catalog: Optional[CatalogService] = None,
        interval: float = 1800.0,
        metrics: Optional[MetricsSink] = None,
        event_limit: int = DEFAULT_EVENT_LIMIT,
        max_workers: int = 0,
        vendor_check: Callable[[str], bool] = is_dell_hardware,
    ) -> None:
        self.discoverer = discoverer
        self.client = client
        self.store = store
        self.event_store = event_store
        self.catalog = catalog
        self.interval = interval
        self.metrics = metrics or NullMetrics()
        self.event_limit = event_limit
        self.max_workers = max_workers
        self.vendor_check = vendor_check

        self.last_cycle: Optional[CycleStats] = None
        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    # ---------- loop control ----------
    def start(self) -> None:
        """Poll now, then every interval until stop(). Blocks the calling thread."""
        with self._state_lock:
            if self._running:
                return
            self._running = True

        try:
            self._tick()
            next_tick = time.monotonic() + self.interval
            while not self._stop.wait(max(0.0, next_tick - time.monotonic())):
                self._tick()
                now = time.monotonic()
                next_tick += self.interval
                # ticks missed while a long cycle ran are dropped, not queued
                while next_tick <= now:
                    next_tick += self.interval
        finally:
            with self._state_lock:
                self._running = False

    def start_background(self) -> threading.Thread:
        self._stop.clear()
        self._thread = threading.Thread(target=self.start, name="poller", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Prevent further cycles. A cycle already running is left to finish."""
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self._running

    def _tick(self) -> None:
        try:
            self.poll_once()
        except Exception:
            logger.exception("Poll cycle failed")

    # ---------- one cycle ----------
    def poll_once(self) -> bool:
        """
        Run one cycle. Returns False, doing nothing, if a cycle is already
        in progress.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Previous poll still running, skipping")
            return False
        try:
            self._poll()
        finally:
            self._cycle_lock.release()
        return True

    def _poll(self) -> None:
        started = datetime.now(timezone.utc)
        logger.info("Starting firmware poll...")

        if self.catalog is not None and self.catalog.needs_sync():
            try:
                self.catalog.sync()
            except CatalogError as err:
                logger.warning("Catalog sync error: %s", err)
            except Exception:
                logger.exception("Catalog sync error")

        try:
            hosts = self.discoverer.discover()
        except DiscoveryError as err:
            logger.error("Discovery error: %s", err)
            return

        logger.info("Discovered %d hosts", len(hosts))
        self._fan_out(hosts)

        self.last_cycle = CycleStats(started=started, finished=datetime.now(timezone.utc), hosts=len(hosts))
        logger.info("Firmware poll complete")

    def _fan_out(self, hosts: List[Host]) -> None:
        if not hosts:
            return
        workers = len(hosts)
        if self.max_workers > 0:
            workers = min(workers, self.max_workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="poll") as executor:
            futures = {executor.submit(self.poll_host, h): h for h in hosts}
            for future in as_completed(futures):
                host = futures[future]
                try:
                    future.result()
                except Exception:
                    # one host's failure never reaches the others
                    logger.exception("%s: unexpected error while polling", host.name)

    # ---------- one host ----------
    def poll_host(self, host: Host) -> Optional[Node]:
        """
        Poll one host and store its snapshot.

        Returns the stored node, or None when the host is not Dell hardware
        and was left out of the store.
        """
        logger.info("Polling %s at %s", host.name, host.bmc_address)
        node = Node(
            name=host.name,
            namespace=host.namespace,
            bmc_address=host.bmc_address,
            last_scanned=datetime.now(timezone.utc),
        )

        try:
            firmware, info = self.client.get_inventory(host.bmc_address, host.credentials)
        except InsightsError as err:
            logger.warning("%s: error polling: %s", host.name, err)
            return self._store_unknown(node)
        except Exception:
            logger.exception("%s: unexpected error reading inventory", host.name)
            return self._store_unknown(node)

        if info is not None:
            node.model = info.model
            node.manufacturer = info.manufacturer
            node.service_tag = info.service_tag
            node.power_state = info.power_state

            if not self.vendor_check(node.manufacturer):
                logger.info("Skipping non-Dell hardware: %s (%s)", host.name, node.manufacturer)
                return None

        self.enrich(node.model, firmware)
        node.firmware = firmware
        node.firmware_count = len(firmware)
        node.updates_available = sum(1 for fw in firmware if fw.needs_update)
        node.status = NodeStatus.NEEDS_UPDATE if node.updates_available else NodeStatus.UP_TO_DATE

        self._collect_health(host, node)
        self._collect_events(host)

        self.store.set_node(node)
        self.metrics.record_scan(host.name, True)
        logger.info("Updated firmware inventory for %s: %d components", host.name, len(firmware))
        return node

    def enrich(self, model: str, firmware: List[FirmwareComponent]) -> None:
        """Fill in available version and catalog criticality per component."""
        if self.catalog is None:
            return
        for fw in firmware:
            entry, found = self.catalog.get_entry(model, fw.component_type)
            if found:
                fw.available_version = entry.version
                fw.severity = entry.criticality

    def _store_unknown(self, node: Node) -> Node:
        node.status = NodeStatus.UNKNOWN
        self.store.set_node(node)
        self.metrics.record_scan(node.name, False)
        return node

    def _fetch(self, host: Host, what: str, call: Callable, *args):
        """Run one best-effort read against host. Returns None if it failed."""
        try:
            return call(host.bmc_address, host.credentials, *args)
        except InsightsError as err:
            logger.warning("%s: error getting %s: %s", host.name, what, err)
        except Exception:
            logger.exception("%s: unexpected error getting %s", host.name, what)
        return None

    def _collect_health(self, host: Host, node: Node) -> None:
        health = self._fetch(host, "health", self.client.get_health_rollup)
        if health is not None:
            node.health_rollup, node.health = health

        thermal = self._fetch(host, "thermal data", self.client.get_thermal_data)
        if thermal is not None:
            node.thermal_summary = thermal[1]

        power = self._fetch(host, "power data", self.client.get_power_data)
        if power is not None:
            node.power_summary = power[1]

    def _collect_events(self, host: Host) -> None:
        if self.event_store is None:
            return
        events = self._fetch(host, "events", self.client.get_events, self.event_limit)
        if events is not None:
            self.event_store.add_events(host.name, events)
