# File Chain:
# Doc Version: v1.0.0
#
"""
gwtopo Main Entry Point - CLI Argument Parsing and Application Bootstrap

PURPOSE:
    Entry point for the gwtopo CLI tool. Handles argument parsing,
    configuration loading, picks the control planes (real host or the
    in-memory host for --dry-run) and dispatches to the reconcilers.

WHO READS ME:
    - Users: via CLI command `gwtopo` or `python -m gwtopo`

WHO I READ:
    - config.py: Configuration loading and defaults
    - models.py: GwtopoError exception handling
    - bridges.py, containers.py, recipes.py, preflight.py: the commands
    - naming.py, macaddr.py: identifier and address helpers
    - colorlog.py: Custom log formatting

COMMANDS:
    - bootstrap: LXD check, missing bridges, virtual wlan radios
    - bridges: reconcile (or --check) the managed bridges
    - remove-bridge: delete bridges and the service NAT rule
    - hash / unhash: device identifier <-> VLAN ID
    - mac: the MAC address pair of a container name
    - client-lan: LAN client container for e.g. vcpe-p1
    - genieacs: the TR-069 ACS container
"""

import argparse
import logging
import os
import sys
import time
from dataclasses import dataclass

import gwtopo
from gwtopo.bridges import BridgeReconciler, load_bridge_specs
from gwtopo.cmd import CommandRunner
from gwtopo.colorlog import CustomFormatter
from gwtopo.config import Config
from gwtopo.containers import ContainerReconciler
from gwtopo.controllers import (
    BridgeController,
    ContainerController,
    FirewallController,
    HostBridgeController,
    IptablesFirewallController,
    LxcContainerController,
)
from gwtopo.inmemory import InMemoryHost
from gwtopo.macaddr import primary_address, secondary_address
from gwtopo.models import GwtopoError
from gwtopo.naming import decode, encode
from gwtopo.preflight import bootstrap, check_project_root
from gwtopo.recipes import (
    CLIENT_SCRIPT,
    GENIEACS_IMAGE,
    GENIEACS_SCRIPT,
    setup_client_lan,
    setup_genieacs,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class Host:
    """the control planes the commands run against"""

    bridges: BridgeController
    firewall: FirewallController
    containers: ContainerController
    dry_run: bool = False


def create_host(cfg: Config, dry_run: bool = False) -> Host:
    if dry_run:
        mem = InMemoryHost()
        mem.image_scripts = {
            CLIENT_SCRIPT: cfg.client_image,
            GENIEACS_SCRIPT: GENIEACS_IMAGE,
        }
        return Host(mem, mem, mem, dry_run=True)
    runner = CommandRunner(sudo=cfg.use_sudo, timeout=cfg.command_timeout or None)
    return Host(
        HostBridgeController(runner, sysfs=cfg.sysfs),
        IptablesFirewallController(runner),
        LxcContainerController(runner),
    )


def valid_vlan(value):
    ivalue = int(value)
    if ivalue < 1 or ivalue > 4094:
        raise argparse.ArgumentTypeError(
            f"invalid value {value}. Valid values are from 1-4094."
        )
    return ivalue


def create_argparser(parser_class=argparse.ArgumentParser):
    """create the argparser for gwtopo"""
    parser = parser_class(prog=gwtopo.__name__, description=gwtopo.__description__)
    config_settings = parser.add_argument_group("configuration")

    config_settings.add_argument(
        "-c",
        "--config",
        dest="configfile",
        help="Use the configuration from this file, defaults to %(default)s",
        default="config.toml",
    )
    config_settings.add_argument(
        "-w",
        "--write",
        dest="writeconfig",
        action="store_true",
        help="Write the default configuration to a file and exit",
        default=False,
    )
    config_settings.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {gwtopo.__version__}"
    )
    config_settings.add_argument(
        "-l",
        "--loglevel",
        type=str,
        default=os.environ.get("LOG_LEVEL", "WARN"),
        help="DEBUG, INFO, WARN, ERROR, CRITICAL, defaults to %(default)s",
    )
    config_settings.add_argument(
        "-p",
        "--progress",
        action="store_true",
        help="show a progress bar",
    )
    config_settings.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Run against an in-memory host instead of LXD and the host network",
    )

    commands = parser.add_subparsers(dest="command", metavar="command")

    commands.add_parser(
        "bootstrap", help="Check LXD, create missing bridges and virtual wlan radios"
    )

    bridges = commands.add_parser("bridges", help="Create or repair the managed bridges")
    bridges.add_argument(
        "names",
        nargs="*",
        help="Bridges to reconcile, defaults to the configured bridges",
    )
    bridges.add_argument(
        "--check",
        action="store_true",
        help="Only report missing or misconfigured bridges",
    )

    remove = commands.add_parser("remove-bridge", help="Delete bridges")
    remove.add_argument("names", nargs="+", help="Bridges to delete")

    hash_cmd = commands.add_parser("hash", help="VLAN ID of a device identifier")
    hash_cmd.add_argument("identifier", help='e.g. "mv2plus-r22-9-05"')

    unhash = commands.add_parser("unhash", help="Device identifier of a VLAN ID")
    unhash.add_argument("hash", type=int)

    mac = commands.add_parser("mac", help="MAC address pair of a container name")
    mac.add_argument("name")

    client = commands.add_parser("client-lan", help="Create a LAN client container")
    client.add_argument("device", help='device identifier ending in -p1..-p4, e.g. "vcpe-p1"')
    client_vlan = client.add_mutually_exclusive_group()
    client_vlan.add_argument(
        "--vlan", type=valid_vlan, default=None, help="VLAN ID, defaults to the configured one"
    )
    client_vlan.add_argument(
        "--derive-vlan",
        dest="derive_vlan",
        action="store_true",
        help="use the packed identifier of the customer device as VLAN ID",
    )
    client.add_argument("--memory", default=None, help='memory limit, e.g. "128MB"')
    client.add_argument("--cpu", default=None, help="CPU limit")

    commands.add_parser("genieacs", help="Create the GenieACS ACS container")
    return parser


def get_log_level(level_name: str) -> tuple[int, bool]:
    log_levels = {
        "CRITICAL": logging.CRITICAL,
        "ERROR": logging.ERROR,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "INFO": logging.INFO,
        "DEBUG": logging.DEBUG,
        "NOTSET": logging.NOTSET,
    }
    level_name = level_name.upper()
    if level_name in log_levels:
        return log_levels[level_name], False
    return logging.WARNING, True


def setup_logging(loglevel: str):
    """sets up the logging, takes the given loglevel and uses the custom,
    colorful log formatter
    """
    logging.basicConfig(level=logging.WARN)
    level, unknown_loglevel = get_log_level(loglevel)
    logging.root.setLevel(level)
    custom_formatter = CustomFormatter()
    for handler in logging.root.handlers:
        handler.setFormatter(custom_formatter)
    if unknown_loglevel:
        _LOGGER.warning("Unknown log level: %s", loglevel.upper())


def _bridges(args, cfg: Config, host: Host) -> int:
    reconciler = BridgeReconciler(host.bridges, host.firewall, cfg, progress=args.progress)
    specs, rejected = load_bridge_specs(args.names or cfg.bridges)
    if args.check:
        bad = [spec.name for spec in specs if not reconciler.verify(spec)]
        for name in bad:
            print(f"Bridge {name} is missing or misconfigured")
        return 1 if bad or rejected else 0
    ok = reconciler.reconcile_all(specs)
    return 0 if ok and not rejected else 1


def _remove_bridges(args, cfg: Config, host: Host) -> int:
    reconciler = BridgeReconciler(host.bridges, host.firewall, cfg)
    specs, rejected = load_bridge_specs(args.names)
    ok = all([reconciler.remove(spec) for spec in specs])
    return 0 if ok and not rejected else 1


def _sleeper(host: Host):
    """dry runs do not wait"""
    return (lambda _: None) if host.dry_run else time.sleep


def _bootstrap(args, cfg: Config, host: Host) -> int:
    if not host.dry_run:
        check_project_root(cfg.root)
    reconciler = BridgeReconciler(host.bridges, host.firewall, cfg, progress=args.progress)
    return 0 if bootstrap(reconciler, host.containers, cfg, sleep=_sleeper(host)) else 1


def _containers(args, cfg: Config, host: Host) -> ContainerReconciler:
    return ContainerReconciler(
        host.containers, cfg, sleep=_sleeper(host), progress=args.progress
    )


def _client_lan(args, cfg: Config, host: Host) -> int:
    setup_client_lan(
        _containers(args, cfg, host),
        args.device,
        vlan=args.vlan,
        memory=args.memory,
        cpu=args.cpu,
        derive_vlan=args.derive_vlan,
    )
    return 0


def _genieacs(args, cfg: Config, host: Host) -> int:
    info = setup_genieacs(_containers(args, cfg, host))
    return 0 if all(info.services.values()) else 1


def _hash(args, cfg: Config, host: Host) -> int:
    print(encode(args.identifier))
    return 0


def _unhash(args, cfg: Config, host: Host) -> int:
    print(decode(args.hash))
    return 0


def _mac(args, cfg: Config, host: Host) -> int:
    print(primary_address(args.name))
    print(secondary_address(args.name))
    return 0


COMMANDS = {
    "bootstrap": _bootstrap,
    "bridges": _bridges,
    "remove-bridge": _remove_bridges,
    "hash": _hash,
    "unhash": _unhash,
    "mac": _mac,
    "client-lan": _client_lan,
    "genieacs": _genieacs,
}


def main(argv: list[str] | None = None):
    """main function, returns 0 on success, 1 otherwise"""
    parser = create_argparser()
    args = parser.parse_args(argv)
    setup_logging(args.loglevel)

    cfg = Config.load(args.configfile)
    if args.writeconfig:
        cfg.save(args.configfile)
        return 0

    if not args.command:
        parser.print_help()
        return 1

    try:
        host = create_host(cfg, dry_run=args.dry_run)
        retval = COMMANDS[args.command](args, cfg, host)
    except GwtopoError as exc:
        _LOGGER.error(exc)
        retval = 1
    return retval


if __name__ == "__main__":
    sys.exit(main())
