"""
baremetal_insights

Polls the Redfish management controllers of a bare-metal fleet, compares the
firmware found against the Dell update catalog and keeps the latest per-node
snapshot and a bounded event history in memory.

RemoteSession   Redfish session login/logout
RedfishCmds     inventory, health, thermal, power and event queries
RedfishParse    payload helpers: classification, health reduction
catalog         manifest fetch, parse and TTL cache
store           node snapshots and event history
poller          scan cycles across the fleet
discovery       host lists and their keyring credentials
projections     update and dashboard views
insights        command line entry point
"""

__version__ = "0.3.0"
