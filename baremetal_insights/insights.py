#
# Bare-metal fleet insights
#
# Description:
#      Polls the Redfish management controllers of every server listed in a
#      host file, compares their firmware against the Dell update catalog and
#      keeps health, thermal, power and event data in memory.
#
#      --once runs a single cycle and prints a JSON summary of the fleet,
#      otherwise the poller runs until interrupted.
#
#      see baremetal-insights -h for available options

import argparse
import json
import logging
import signal
import sys

from baremetal_insights import __version__
from baremetal_insights.RedfishCmds import RedfishCmds
from baremetal_insights.catalog import CatalogService
from baremetal_insights.config import Settings
from baremetal_insights.discovery import HostFileDiscoverer
from baremetal_insights.errors import ConfigError
from baremetal_insights.metrics import NullMetrics, PrometheusMetrics
from baremetal_insights.poller import Poller
from baremetal_insights.projections import dashboard, list_updates
from baremetal_insights.store import EventStore, NodeStore

logger = logging.getLogger('baremetal_insights')

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'


def parse_args(argv=None):
    '''
    Parse input options
    '''
    parser = argparse.ArgumentParser(prog='baremetal-insights', description='Firmware and health inventory for a bare-metal fleet')
    parser.add_argument('-c', '--config', metavar='<file>', help='INI file with an [insights] section')
    parser.add_argument('-f', '--hosts-file', metavar='<file>', help='CSV file of hosts (name,namespace,bmc_address,site,username)')
    parser.add_argument('--catalog-url', metavar='<url>', help='Dell catalog location (URL or path)')
    parser.add_argument('--no-catalog', action='store_true', help='Do not fetch the catalog; every node reports up-to-date')
    parser.add_argument('-i', '--interval', metavar='<duration>', help='Poll interval, e.g. 900, 15m, 1h')
    parser.add_argument('-j', '--max-workers', type=int, metavar='<n>', help='Cap concurrent host polls (0 = one per host)')
    parser.add_argument('--metrics-port', type=int, metavar='<port>', help='Serve Prometheus metrics on this port')
    parser.add_argument('--once', action='store_true', help='Run one poll cycle, print a JSON summary and exit')
    parser.add_argument('-d', '--debug', action='store_true', help='Debug logging')
    parser.add_argument('--log-file', metavar='<file>', help='Also append log output to this file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser.parse_args(argv)


def setup_logging(debug=False, log_file=None):
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT, handlers=handlers, force=True)
    # urllib3 logs every connection at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def build_settings(args):
    settings = Settings.load(args.config)
    overrides = {}
    if args.hosts_file:
        overrides['hosts_file'] = args.hosts_file
    if args.catalog_url:
        overrides['catalog_url'] = args.catalog_url
    if args.interval:
        overrides['poll_interval'] = args.interval
    if args.max_workers is not None:
        overrides['max_workers'] = str(args.max_workers)
    if args.metrics_port is not None:
        overrides['metrics_port'] = str(args.metrics_port)
    if args.no_catalog:
        overrides['catalog_enabled'] = 'false'
    settings.apply(overrides, source='command line')
    return settings


def build_poller(settings, metrics=None):
    '''
    Wire stores, client, catalog and discovery from settings.
    Returns (poller, node_store, event_store).
    '''
    if not settings.hosts_file:
        raise ConfigError('no host source configured (set hosts_file or HOSTS_FILE, or pass --hosts-file)')

    node_store = NodeStore()
    event_store = EventStore(settings.event_capacity)
    catalog = CatalogService(settings.catalog_url, settings.catalog_ttl) if settings.catalog_enabled else None
    discoverer = HostFileDiscoverer(settings.hosts_file, keyring_master=settings.keyring_master, keyring_file=settings.keyring_file)

    poller = Poller(
        discoverer,
        RedfishCmds(timeout=settings.request_timeout),
        node_store,
        event_store=event_store,
        catalog=catalog,
        interval=settings.poll_interval,
        metrics=metrics or NullMetrics(),
        event_limit=settings.event_fetch_limit,
        max_workers=settings.max_workers,
    )
    return poller, node_store, event_store


def fleet_summary(poller, node_store, event_store):
    nodes = node_store.list_nodes()
    last = poller.last_cycle.finished if poller.last_cycle else None
    return {
        'dashboard': dashboard(nodes, poller.interval, last).to_dict(),
        'namespaces': node_store.get_namespaces(),
        'updates': [u.__dict__ for u in list_updates(nodes)],
        'nodes': [n.to_dict() for n in sorted(nodes, key=lambda n: n.name)],
        'events': [e.to_dict() for e in event_store.list_events(limit=100)],
    }


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug, args.log_file)

    try:
        settings = build_settings(args)
        metrics = PrometheusMetrics() if settings.metrics_port else NullMetrics()
        poller, node_store, event_store = build_poller(settings, metrics)
    except ConfigError as err:
        logger.error('%s', err)
        return 2

    if args.once:
        poller.poll_once()
        print(json.dumps(fleet_summary(poller, node_store, event_store), indent=4))
        return 0

    if settings.metrics_port:
        metrics.serve(settings.metrics_port)

    def shutdown(signum, frame):
        logger.info('Shutting down...')
        poller.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    logger.info('Poller ready - hosts: %s, interval: %ss, catalog TTL: %ss',
                settings.hosts_file, int(settings.poll_interval), int(settings.catalog_ttl))
    poller.start()
    return 0


if __name__ == '__main__':
    sys.exit(main())
