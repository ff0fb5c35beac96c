"""
File Chain:
Doc Version: v1.0.0

- Called by: main.py (client-lan and genieacs commands)
- Purpose: Setup sequences for the concrete container classes

gwtopo Recipes - LAN Clients and the GenieACS ACS

PURPOSE:
    Decides the content of the profile and network descriptors for the
    container classes of the topology and drives the container reconciler
    through their setup sequence.

WHO I READ:
    - containers.py: ContainerReconciler
    - naming.py: parse_lan_device, lan_port_vlan, eth_interface
    - render.py: genieacs_profile, static_netplan, write_descriptor
    - colorlog.py: banner

GENIEACS SEQUENCE:
    mongod, then genieacs-cwmp, genieacs-nbi, genieacs-fs and genieacs-ui,
    each followed by a fixed settle delay, then a status report of every
    service and the listening ports.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from gwtopo.colorlog import banner
from gwtopo.config import Config
from gwtopo.containers import ContainerReconciler
from gwtopo.models import ClientSpec, ContainerSpec, InvalidIdentifier
from gwtopo.naming import eth_interface, lan_port_vlan, parse_lan_device
from gwtopo.render import GENIEACS_PORTS, genieacs_profile, static_netplan, write_descriptor

_LOGGER = logging.getLogger(__name__)

GENIEACS = "genieacs"
GENIEACS_IMAGE = "genieacs-base"
GENIEACS_SCRIPT = "genieacs-base.sh"
CLIENT_SCRIPT = "client-base.sh"
MONGODB_PORT = 27017

# (unit, description, settle seconds after start)
GENIEACS_SERVICES = (
    ("mongod", "MongoDB Database", 10),
    ("genieacs-cwmp", "GenieACS CWMP (TR-069)", 5),
    ("genieacs-nbi", "GenieACS Northbound Interface", 5),
    ("genieacs-fs", "GenieACS File Server", 5),
    ("genieacs-ui", "GenieACS Web UI", 15),
)


@dataclass
class GenieacsInfo:
    """what the ACS setup reports back"""

    name: str
    address: str | None
    ready: bool
    services: dict[str, bool] = field(default_factory=dict)

    @property
    def endpoints(self) -> dict[str, str]:
        host = self.address or "<unknown>"
        return {
            "Web UI": f"http://{host}:3000",
            "CWMP (TR-069)": f"http://{host}:7547",
            "NBI API": f"http://{host}:7557",
            "File Server": f"http://{host}:7567",
            "MongoDB": f"{host}:{MONGODB_PORT}",
        }


def build_script(cfg: Config, name: str) -> str:
    """path of an image build script in the project tree"""
    return str(Path(cfg.root) / "gen" / name)


def client_spec(
    cfg: Config, device: str, vlan=None, memory=None, cpu=None, derive_vlan=False
) -> ClientSpec:
    """the client container for a LAN device identifier like vcpe-p1

    With derive_vlan the VLAN is the packed form of the customer device in
    front of the port, e.g. 2116 for mv2plus-r22-9-05-p3.
    """
    base, port = parse_lan_device(device)
    _LOGGER.info("Device base: %s, LAN port: %d", base, port)
    if derive_vlan:
        vlan = lan_port_vlan(base)
        if vlan is None:
            raise InvalidIdentifier(f"{device}: {base} carries no customer VLAN")
        _LOGGER.info("Gateway interface %s, VLAN %d", eth_interface(device), vlan)
    return ClientSpec(
        name=f"client-lan-{device}",
        port=port,
        vlan=cfg.client_vlan if vlan is None else vlan,
        memory=memory or cfg.client_memory,
        cpu=cpu or cfg.client_cpu,
        image=cfg.client_image,
    )


def setup_client_lan(
    reconciler: ContainerReconciler,
    device: str,
    vlan=None,
    memory=None,
    cpu=None,
    derive_vlan=False,
) -> ClientSpec:
    """create the LAN client container for a device identifier"""
    spec = client_spec(
        reconciler.config,
        device,
        vlan=vlan,
        memory=memory,
        cpu=cpu,
        derive_vlan=derive_vlan,
    )
    _LOGGER.warning(
        "Creating client container %s on %s, VLAN %d, memory %s, cpu %s",
        spec.name, spec.bridge, spec.vlan, spec.memory, spec.cpu,
    )
    reconciler.create_client_container(
        spec, script=build_script(reconciler.config, CLIENT_SCRIPT)
    )
    banner(f"LAN client container {spec.name} created", "green")
    return spec


def genieacs_netplan(cfg: Config) -> str:
    return static_netplan(
        ipv4=cfg.acs_ipv4,
        gateway4=cfg.service_gateway4,
        ipv6=cfg.acs_ipv6,
        gateway6=cfg.service_gateway6,
        nameservers=cfg.acs_nameservers,
    )


def setup_genieacs(reconciler: ContainerReconciler) -> GenieacsInfo:
    """create the ACS container and start its services in order"""
    cfg = reconciler.config
    _LOGGER.warning("Checking for GenieACS base image...")
    reconciler.ensure_base_image(GENIEACS_IMAGE, build_script(cfg, GENIEACS_SCRIPT))

    netplan = write_descriptor(cfg, f"{GENIEACS}-50-cloud-init.yaml", genieacs_netplan(cfg))
    spec = ContainerSpec(
        image=GENIEACS_IMAGE,
        name=GENIEACS,
        profile_yaml=genieacs_profile(cfg, GENIEACS),
        netplan_file=netplan,
        alias=False,
    )
    _LOGGER.warning("Creating GenieACS container with network configuration...")
    ready = reconciler.create_standard_container(spec)

    ctl = reconciler.containers
    ctl.exec(GENIEACS, ["timedatectl", "set-timezone", cfg.timezone]).check()

    for unit, description, settle in GENIEACS_SERVICES:
        _LOGGER.warning("Starting %s...", description)
        reconciler.start_service(GENIEACS, unit)
        reconciler.sleep(settle)

    info = GenieacsInfo(GENIEACS, ctl.ipv4_address(GENIEACS), ready)
    for unit, description, _ in GENIEACS_SERVICES:
        banner(f"=== {description} Status ===", "blue")
        status = reconciler.service_status(GENIEACS, unit)
        info.services[unit] = status.ok
        if status.stdout:
            print(status.stdout.rstrip())
        if not status.ok:
            _LOGGER.error("%s is not running", unit)

    banner("=== Network Port Status ===", "blue")
    ports = [MONGODB_PORT] + [port for _, port in GENIEACS_PORTS]
    listening = ctl.exec(GENIEACS, ["ss", "-tlnp"])
    for line in listening.stdout.splitlines():
        if any(f":{port} " in line for port in ports):
            print(line)

    banner("GenieACS Container Setup Complete!", "green")
    for label, url in info.endpoints.items():
        print(f"  {label:<15} {url}")
    return info
