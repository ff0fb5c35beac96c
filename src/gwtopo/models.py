"""
gwtopo Data Models - Core Data Structures and Errors

PURPOSE:
    Defines the data models shared by the reconcilers and the platform
    layer (bridge, container and client specs, NAT rules, command results)
    and the exception hierarchy.

WHO READS ME:
    - naming.py: InvalidIdentifier, InvalidHash
    - bridges.py: BridgeKind, BridgeSpec, NatRule, UnsupportedBridge
    - containers.py: ContainerSpec, ClientSpec, CommandError, NetworkUnreachable
    - controllers.py, inmemory.py, cmd.py: CommandResult
    - main.py: GwtopoError for exception handling

WHO I READ:
    - None (leaf module, no internal dependencies)

DATA MODELS:

    BridgeKind:
        - SERVICE: LXD managed L3 bridge (lxdbr1)
        - WAN: plain L2 host bridge (wan, cm)
        - LAN: VLAN filtering host bridge (lan-p1..4, br-wlan0..1, wanoe)

    BridgeSpec:
        - name: str, kind: BridgeKind

    NatRule:
        - one POSTROUTING rule, rendered to iptables arguments

    ContainerSpec:
        - image, name, profile_yaml, netplan_file, alias

    ClientSpec:
        - name, port, vlan, memory, cpu, image

    CommandResult:
        - returncode, stdout, stderr of an external command
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class GwtopoError(Exception):
    """Base class for all errors raised by gwtopo"""


class InvalidIdentifier(GwtopoError, ValueError):
    """a device identifier is outside the naming grammar"""


class InvalidHash(GwtopoError, ValueError):
    """a packed identifier hash has an out of range field"""


class UnsupportedBridge(GwtopoError):
    """a bridge name is not one of the managed bridges"""


class PreconditionError(GwtopoError):
    """a required tool, image or directory layout is missing"""


class NetworkUnreachable(GwtopoError):
    """a container did not reach the network in time"""


class CommandError(GwtopoError):
    """a checked external command returned a non-zero exit status"""

    def __init__(self, argv: list[str], result: "CommandResult"):
        self.argv = list(argv)
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip()
        msg = f"command failed ({result.returncode}): {' '.join(self.argv)}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


@dataclass
class CommandResult:
    """outcome of one external command"""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    argv: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "CommandResult":
        """raise CommandError unless the command succeeded"""
        if not self.ok:
            raise CommandError(self.argv, self)
        return self


class BridgeKind(Enum):
    """how a managed bridge is created and repaired"""

    SERVICE = "service"
    WAN = "wan"
    LAN = "lan"


@dataclass(frozen=True)
class BridgeSpec:
    """a managed bridge and its kind"""

    name: str
    kind: BridgeKind


@dataclass(frozen=True)
class NatRule:
    """a masquerade rule in the nat table, source traffic leaving neither
    through the egress interface nor towards the excluded destination"""

    source: str
    egress: str
    exclude: str
    target: str = "MASQUERADE"
    chain: str = "POSTROUTING"

    def spec(self) -> list[str]:
        """rule match and target, without the table and chain operation"""
        return [
            "-s", self.source,
            "!", "-o", self.egress,
            "!", "-d", self.exclude,
            "-j", self.target,
        ]


@dataclass
class ContainerSpec:
    """a container created from a full YAML profile"""

    image: str
    name: str
    profile_yaml: str = ""
    netplan_file: Path | None = None
    alias: bool = True


@dataclass
class ClientSpec:
    """a lightweight LAN client container, profile mutated in place"""

    name: str
    port: int
    vlan: int = 100
    memory: str = "128MB"
    cpu: str = "1"
    image: str = "client-base"

    @property
    def bridge(self) -> str:
        return f"lan-p{self.port}"
