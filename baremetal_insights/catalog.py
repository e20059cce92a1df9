"""
Dell firmware catalog.

CatalogFetcher downloads Catalog.xml (usually gzipped), CatalogParser turns the
manifest into CatalogEntry rows, CatalogCache indexes them by
(system model, component type) and CatalogService ties the three together for
the poller.

Versions are compared as plain strings when two rows share a key, so "2.9.0"
outranks "2.10.0".
"""

from __future__ import annotations

import gzip
import logging
import threading
import time
import zlib
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from baremetal_insights.errors import CatalogError
from baremetal_insights.models import CatalogEntry, catalog_key

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_URL = "https://downloads.dell.com/catalog/Catalog.xml.gz"
DOWNLOAD_BASE = "https://downloads.dell.com/"
GZIP_MAGIC = b"\x1f\x8b"

COMPONENT_TYPES = {
    "BIOS": "BIOS",
    "FRMW": "Firmware",
    "DRVR": "Driver",
    "APAC": "Application",
}


def map_component_type(code: str) -> str:
    """Readable name for a Dell component type code; unknown codes pass through."""
    return COMPONENT_TYPES.get(code, code)


class CatalogFetcher:
    """Downloads the catalog and undoes gzip compression if present."""

    def __init__(self, url: str, timeout: int = 300, http: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout  # the full catalog is large
        self.http = http

    def fetch(self) -> bytes:
        if self.url.startswith("file://") or "://" not in self.url:
            data = self._read_file()
            compressed_hint = self.url.endswith(".gz")
        else:
            response = self._get()
            data = response.content
            compressed_hint = (
                response.headers.get("Content-Type") == "application/gzip"
                or response.headers.get("Content-Encoding") == "gzip"
                or self.url.endswith(".gz")
            )

        # requests already decodes Content-Encoding: gzip, so only trust the bytes
        if data[:2] == GZIP_MAGIC:
            try:
                data = gzip.decompress(data)
            except (OSError, EOFError, zlib.error) as err:
                raise CatalogError(f"failed to decompress catalog: {err}") from err
        elif compressed_hint:
            logger.debug("catalog at %s advertised gzip but arrived uncompressed", self.url)
        return data

    def _get(self) -> requests.Response:
        http = self.http or requests
        try:
            response = http.get(self.url, timeout=self.timeout)
        except requests.RequestException as err:
            raise CatalogError(f"failed to fetch catalog: {err}") from err
        if response.status_code != 200:
            raise CatalogError(f"catalog fetch returned status {response.status_code}")
        return response

    def _read_file(self) -> bytes:
        path = Path(self.url[len("file://"):] if self.url.startswith("file://") else self.url)
        try:
            return path.read_bytes()
        except OSError as err:
            raise CatalogError(f"failed to read catalog {path}: {err}") from err


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    for c in elem:
        if _local(c.tag) == name:
            return c
    return None


def _children(elem: Optional[ET.Element], name: str) -> List[ET.Element]:
    if elem is None:
        return []
    return [c for c in elem if _local(c.tag) == name]


class CatalogParser:
    """
    Parses Dell's Manifest XML.

    One CatalogEntry is produced per supported system model of each
    SoftwareComponent, so a BIOS package for R640 and R740 yields two rows.
    """

    def parse(self, data: bytes) -> List[CatalogEntry]:
        try:
            root = ET.fromstring(data)
        except ET.ParseError as err:
            raise CatalogError(f"failed to parse catalog XML: {err}") from err
        if _local(root.tag) != "Manifest":
            raise CatalogError(f"unexpected catalog root element {_local(root.tag)!r}")

        entries: List[CatalogEntry] = []
        for comp in _children(root, "SoftwareComponent"):
            entries.extend(self._component_entries(comp))
        return entries

    def _component_entries(self, comp: ET.Element) -> Iterable[CatalogEntry]:
        ctype = _child(comp, "ComponentType")
        crit = _child(comp, "Criticality")
        name = _child(comp, "Name")
        display = _child(name, "Display") if name is not None else None
        try:
            size = int(comp.get("size") or 0)
        except ValueError:
            size = 0

        base = dict(
            component_id=comp.get("packageID", ""),
            component_type=map_component_type(ctype.get("value", "") if ctype is not None else ""),
            version=comp.get("vendorVersion", ""),
            release_date=comp.get("releaseDate", ""),
            criticality=crit.get("value", "") if crit is not None else "",
            download_url=DOWNLOAD_BASE + comp.get("path", ""),
            file_name=(display.text or "").strip() if display is not None else "",
            size_mb=size // 1024 // 1024,
        )

        for brand in _children(_child(comp, "SupportedSystems"), "Brand"):
            for model in _children(brand, "Model"):
                yield CatalogEntry(system_model_id=(model.text or "").strip(), **base)


class CatalogCache:
    """
    Catalog index with a time-to-live.

    set() builds a fresh index and swaps it in as one object, so lookups
    never see a half-built index and need no lock.
    """

    def __init__(self, ttl: float) -> None:
        self.ttl = ttl
        self._lock = threading.Lock()
        self._entries: Dict[str, CatalogEntry] = {}
        self._updated_at: Optional[datetime] = None
        self._updated_mono: Optional[float] = None

    def set(self, entries: Iterable[CatalogEntry]) -> None:
        index: Dict[str, CatalogEntry] = {}
        for entry in entries:
            key = catalog_key(entry.system_model_id, entry.component_type)
            existing = index.get(key)
            # TODO - version-aware compare that also handles Dell letter versions (A07, 1.0.0-rc)
            if existing is None or entry.version > existing.version:
                index[key] = entry

        with self._lock:
            self._entries = index
            self._updated_at = datetime.now(timezone.utc)
            self._updated_mono = time.monotonic()

    def get_latest_version(self, system_model: str, component_type: str) -> Tuple[str, bool]:
        entry = self._entries.get(catalog_key(system_model, component_type))
        if entry is None:
            return "", False
        return entry.version, True

    def get_entry(self, system_model: str, component_type: str) -> Tuple[Optional[CatalogEntry], bool]:
        entry = self._entries.get(catalog_key(system_model, component_type))
        return entry, entry is not None

    def is_stale(self) -> bool:
        updated = self._updated_mono
        if updated is None:
            return True
        return time.monotonic() - updated > self.ttl

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._updated_at

    def count(self) -> int:
        return len(self._entries)


class CatalogService:
    """Fetch, parse and cache the catalog. Syncs only when asked to."""

    def __init__(
        self,
        catalog_url: str = DEFAULT_CATALOG_URL,
        cache_ttl: float = 24 * 3600,
        fetcher: Optional[CatalogFetcher] = None,
        parser: Optional[CatalogParser] = None,
        cache: Optional[CatalogCache] = None,
    ) -> None:
        self.fetcher = fetcher or CatalogFetcher(catalog_url)
        self.parser = parser or CatalogParser()
        self.cache = cache or CatalogCache(cache_ttl)

    def sync(self) -> None:
        """
        Replace the index with a freshly downloaded catalog.

        Raises CatalogError on failure. The previous index stays in place,
        stale data beats no data.
        """
        logger.info("Syncing Dell firmware catalog from %s", self.fetcher.url)
        try:
            data = self.fetcher.fetch()
        except CatalogError as err:
            raise CatalogError(f"fetch failed: {err}") from err
        try:
            entries = self.parser.parse(data)
        except CatalogError as err:
            raise CatalogError(f"parse failed: {err}") from err

        self.cache.set(entries)
        logger.info("Catalog synced: %d entries", self.cache.count())

    def needs_sync(self) -> bool:
        return self.cache.is_stale()

    def get_latest_version(self, system_model: str, component_type: str) -> Tuple[str, bool]:
        return self.cache.get_latest_version(system_model, component_type)

    def get_entry(self, system_model: str, component_type: str) -> Tuple[Optional[CatalogEntry], bool]:
        return self.cache.get_entry(system_model, component_type)

    @property
    def last_synced(self) -> Optional[datetime]:
        return self.cache.last_updated
