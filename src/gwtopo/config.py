"""
File Chain:
Doc Version: v1.0.0

- Called by: main.py, bridges.py, containers.py, recipes.py, preflight.py
- Purpose: Configuration loading and defaults management

gwtopo Configuration - Configuration Loading and Defaults Management

PURPOSE:
    Manages configuration loading from TOML files and provides the defaults
    of the emulated gateway topology: which bridges are managed, how the
    service bridge is addressed and NATed, polling bounds, and the defaults
    for client and ACS containers.

WHO READS ME:
    - main.py: Loads configuration via Config.load() during bootstrap
    - bridges.py: bridge list, service bridge addressing, NAT policy
    - containers.py: baseline profile, readiness marker, poll bounds
    - recipes.py: client and ACS defaults

WHO I READ:
    - None (leaf module, no internal dependencies)

DEPENDENCIES:
    - serde: TOML serialization/deserialization (@deserialize, @serialize)
    - serde.toml: from_toml(), to_toml()
    - dataclasses: @dataclass decorator, field()
    - ipaddress: IPv4Network for the service subnet and NAT exclusion

FILE FORMAT:
    config.toml example:
    ```toml
    root = "/srv/rdkb-sim"
    bridges = ["lxdbr1", "wan", "cm", "lan-p1", "lan-p2", "lan-p3", "lan-p4"]
    use_sudo = true
    nat_passthrough = true
    nat_egress = "wan"
    readiness_attempts = 30
    ```
"""

import logging
from dataclasses import dataclass, field
from ipaddress import IPv4Network

from serde import deserialize, serialize, SerdeError
from serde.toml import from_toml, to_toml

_LOGGER = logging.getLogger(__name__)

DEFAULT_BRIDGES = ("lxdbr1", "wan", "cm", "lan-p1", "lan-p2", "lan-p3", "lan-p4")


@deserialize
@serialize
@dataclass
class Config:
    """gateway topology configuration"""

    root: str = "."
    bridges: list[str] = field(default_factory=lambda: list(DEFAULT_BRIDGES))
    use_sudo: bool = True
    # seconds, 0 waits for every command to finish
    command_timeout: int = 0
    lxd_versions: list[int] = field(default_factory=lambda: [4, 5])

    service_ipv4: str = "10.10.10.1/24"
    service_ipv6: str = "2001:dbf:0:1::1/64"
    nat_passthrough: bool = True
    nat_source: IPv4Network = IPv4Network("10.10.10.0/24")
    nat_egress: str = "wan"
    nat_exclude: IPv4Network = IPv4Network("10.10.10.0/24")

    baseline_profile: str = "default"
    storage_pool: str = "default"
    netplan_path: str = "/etc/netplan/50-cloud-init.yaml"
    readiness_marker: str = "/var/lib/cloud/instance/boot-finished"
    readiness_attempts: int = 30
    network_attempts: int = 10
    network_probe: str = "8.8.8.8"
    poll_interval: float = 1.0
    sysfs: str = "/sys/class/net"

    client_image: str = "client-base"
    client_vlan: int = 100
    client_memory: str = "128MB"
    client_cpu: str = "1"

    acs_ipv4: str = "10.10.10.200/24"
    acs_ipv6: str = "2001:dbf:0:1::200/64"
    acs_nameservers: list[str] = field(default_factory=lambda: ["8.8.8.8"])
    timezone: str = "America/Los_Angeles"

    @classmethod
    def load(cls, filename: str) -> "Config":
        """load the configuration from the given file"""
        try:
            with open(filename, encoding="utf-8") as handle:
                cfg = from_toml(cls, handle.read())
            _LOGGER.info("Configuration loaded from file %s", filename)
        except (FileNotFoundError, TypeError, ValueError, SerdeError) as exc:
            if not isinstance(exc, FileNotFoundError):
                _LOGGER.error(exc)
            cfg = cls()
            _LOGGER.warning("using configuration defaults")
        return cfg

    def save(self, filename: str):
        """save the configuration to the given file"""
        with open(filename, "w+", encoding="utf-8") as handle:
            handle.write(to_toml(self))

    @property
    def service_gateway4(self) -> str:
        """the service bridge IPv4 address without prefix length"""
        return self.service_ipv4.split("/", 1)[0]

    @property
    def service_gateway6(self) -> str:
        return self.service_ipv6.split("/", 1)[0]
