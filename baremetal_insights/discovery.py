"""
Host discovery.

The poller only needs a list of Host records per cycle. Where they come from
is behind the Discoverer interface: a fixed list, or a CSV host file whose
credentials live in the keyring (see site_creds).

Host file format, one server per row:

    name,namespace,bmc_address,site,username
    r640-01,rack-a,idrac-virtualmedia://10.0.0.11/redfish/v1/Systems/System.Embedded.1,sc,
    r640-02,rack-a,10.0.0.12,sc,root

An empty username means "first user in the site's list that has a password".
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol
from urllib.parse import urlsplit

import keyring

from baremetal_insights import site_creds
from baremetal_insights.errors import DiscoveryError
from baremetal_insights.models import Credentials, Host

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("name", "bmc_address", "site")


class Discoverer(Protocol):
    """Returns the hosts to poll this cycle. Raises DiscoveryError when it cannot."""

    def discover(self) -> List[Host]:
        ...


class StaticDiscoverer:
    """A fixed host list, handy for embedding and tests."""

    def __init__(self, hosts: Iterable[Host]) -> None:
        self.hosts = [normalize_host(h) for h in hosts]

    def discover(self) -> List[Host]:
        return list(self.hosts)


class HostFileDiscoverer:
    """Reads hosts from a CSV file on every call so edits apply next cycle."""

    def __init__(
        self,
        path: str,
        users: Optional[List[str]] = None,
        keyring_master: str = "",
        keyring_file: str = site_creds.DEFAULT_CRYPT_PATH,
    ) -> None:
        self.path = Path(path).expanduser()
        self.users = users
        if keyring_master:
            site_creds.bind_keyring(keyring_master, keyring_file)

    def discover(self) -> List[Host]:
        try:
            with self.path.open(newline="", encoding="utf-8-sig") as f:
                rows = list(csv.DictReader(f))
        except OSError as err:
            raise DiscoveryError(f"failed to read host file {self.path}: {err}") from err
        except csv.Error as err:
            raise DiscoveryError(f"malformed host file {self.path}: {err}") from err

        if rows:
            missing = [c for c in REQUIRED_COLUMNS if c not in rows[0]]
            if missing:
                raise DiscoveryError(f"host file {self.path} lacks columns: {', '.join(missing)}")

        hosts: List[Host] = []
        namespace_count = {}
        for row in rows:
            name = (row.get("name") or "").strip()
            if not name:
                continue
            creds = self._credentials(row)
            if creds is None:
                logger.warning("%s: no stored credentials for site %r, skipping", name, row.get("site"))
                continue
            namespace = (row.get("namespace") or "").strip()
            hosts.append(Host(
                name=name,
                namespace=namespace,
                bmc_address=parse_bmc_address((row.get("bmc_address") or "").strip()),
                credentials=creds,
            ))
            namespace_count[namespace] = namespace_count.get(namespace, 0) + 1

        for ns, count in sorted(namespace_count.items()):
            logger.debug("  namespace %s: %d hosts", ns or "<none>", count)
        return hosts

    def _credentials(self, row) -> Optional[Credentials]:
        site = (row.get("site") or "").strip()
        username = (row.get("username") or "").strip()
        if username:
            pw = keyring.get_password(site, username)
            return Credentials(username, pw) if pw else None
        pairs = site_creds.get_site_credentials(site, self.users)
        if not pairs:
            return None
        user, pw = pairs[0]
        return Credentials(user, pw)


def parse_bmc_address(address: str) -> str:
    """
    Reduce a BMC address to the host part.

    idrac-virtualmedia://192.168.1.100/redfish/v1/Systems/System.Embedded.1
    redfish-virtualmedia://10.0.0.50:443/redfish/v1/...
    ipmi://192.168.1.100
    Anything without a scheme is assumed to be a bare host name or IP already.
    """
    if "://" in address:
        try:
            hostname = urlsplit(address).hostname
        except ValueError:
            hostname = None
        if hostname:
            return hostname
    return address


def normalize_host(host: Host) -> Host:
    address = parse_bmc_address(host.bmc_address)
    if address == host.bmc_address:
        return host
    return Host(host.name, host.namespace, address, host.credentials)


def is_dell_hardware(manufacturer: str) -> bool:
    return "dell" in (manufacturer or "").lower()
