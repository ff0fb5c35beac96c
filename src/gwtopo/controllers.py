"""Narrow interfaces to the control planes gwtopo drives.

The reconcilers only talk to these three controllers. The production
implementations shell out to ``ip``, ``sysctl``, ``modprobe``, ``lxc`` and
``iptables``; ``gwtopo.inmemory`` provides an in-process implementation.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from gwtopo.cmd import CommandRunner
from gwtopo.models import CommandResult, NatRule

_LOGGER = logging.getLogger(__name__)


class BridgeController(ABC):
    """LXD managed networks and host bridges/links"""

    @abstractmethod
    def lxd_network_exists(self, name: str) -> bool:
        """True if LXD manages a network of that name."""

    @abstractmethod
    def lxd_network_create(self, name: str) -> CommandResult: ...

    @abstractmethod
    def lxd_network_set(self, name: str, key: str, value: str) -> CommandResult: ...

    @abstractmethod
    def lxd_network_delete(self, name: str) -> CommandResult: ...

    @abstractmethod
    def bridge_exists(self, name: str) -> bool:
        """True if a host link of type bridge has that name."""

    @abstractmethod
    def link_exists(self, name: str) -> bool:
        """True if any host link has that name."""

    @abstractmethod
    def create_bridge(
        self, name: str, vlan_filtering: bool = False, default_pvid: int | None = None
    ) -> CommandResult: ...

    @abstractmethod
    def delete_bridge(self, name: str) -> CommandResult: ...

    @abstractmethod
    def set_link_up(self, name: str, up: bool = True) -> CommandResult: ...

    @abstractmethod
    def rename_link(self, name: str, new_name: str) -> CommandResult: ...

    @abstractmethod
    def flush_addresses(self, name: str) -> CommandResult: ...

    @abstractmethod
    def set_vlan_filtering(self, name: str, enabled: bool = True) -> CommandResult: ...

    @abstractmethod
    def vlan_filtering_enabled(self, name: str) -> bool: ...

    @abstractmethod
    def disable_ipv6_ra(self, name: str) -> CommandResult: ...

    @abstractmethod
    def module_loaded(self, module: str) -> bool: ...

    @abstractmethod
    def load_module(self, module: str, *params: str) -> CommandResult: ...

    @abstractmethod
    def unload_module(self, module: str) -> CommandResult: ...


class FirewallController(ABC):
    """host NAT table"""

    @abstractmethod
    def nat_rule_exists(self, rule: NatRule) -> bool:
        """Exact match check of the rule."""

    @abstractmethod
    def add_nat_rule(self, rule: NatRule) -> CommandResult: ...

    @abstractmethod
    def delete_nat_rule(self, rule: NatRule) -> CommandResult: ...

    @abstractmethod
    def lxd_nat_present(self, network: str) -> bool:
        """True if LXD installed its own NAT rules for the network."""


class ContainerController(ABC):
    """LXD images, profiles and containers"""

    @abstractmethod
    def lxd_version(self) -> str | None:
        """LXD version string, None if LXD is not installed."""

    @abstractmethod
    def image_exists(self, alias: str) -> bool: ...

    @abstractmethod
    def build_image(self, script: str) -> CommandResult:
        """Run an image build script."""

    @abstractmethod
    def profile_exists(self, name: str) -> bool: ...

    @abstractmethod
    def profile_create(self, name: str) -> CommandResult: ...

    @abstractmethod
    def profile_copy(self, source: str, name: str) -> CommandResult: ...

    @abstractmethod
    def profile_edit(self, name: str, yaml_text: str) -> CommandResult: ...

    @abstractmethod
    def profile_delete(self, name: str) -> CommandResult: ...

    @abstractmethod
    def profile_set(self, name: str, key: str, value: str) -> CommandResult: ...

    @abstractmethod
    def profile_device_add(
        self, name: str, device: str, dev_type: str, **props: str
    ) -> CommandResult: ...

    @abstractmethod
    def profile_device_remove(self, name: str, device: str) -> CommandResult: ...

    @abstractmethod
    def container_exists(self, name: str) -> bool: ...

    @abstractmethod
    def delete(self, name: str) -> CommandResult:
        """Force delete a container."""

    @abstractmethod
    def launch(self, image: str, name: str, profile: str) -> CommandResult: ...

    @abstractmethod
    def restart(self, name: str) -> CommandResult: ...

    @abstractmethod
    def exec(
        self, name: str, argv: list[str], input_text: str | None = None
    ) -> CommandResult: ...

    @abstractmethod
    def file_push(
        self, source: str, name: str, path: str, uid: int = 0, gid: int = 0, mode: str = "644"
    ) -> CommandResult: ...

    @abstractmethod
    def ipv4_address(self, name: str) -> str | None: ...


class HostBridgeController(BridgeController):
    """bridges through lxc network, ip, sysctl and modprobe"""

    def __init__(self, runner: CommandRunner, sysfs: str = "/sys/class/net"):
        self.runner = runner
        self.sysfs = Path(sysfs)

    def lxd_network_exists(self, name: str) -> bool:
        return self.runner.run(["lxc", "network", "show", name]).ok

    def lxd_network_create(self, name: str) -> CommandResult:
        return self.runner.run(["lxc", "network", "create", name])

    def lxd_network_set(self, name: str, key: str, value: str) -> CommandResult:
        return self.runner.run(["lxc", "network", "set", name, key, value])

    def lxd_network_delete(self, name: str) -> CommandResult:
        return self.runner.run(["lxc", "network", "delete", name])

    def bridge_exists(self, name: str) -> bool:
        result = self.runner.run(["ip", "-o", "link", "show", "type", "bridge"])
        if not result.ok:
            return False
        for line in result.stdout.splitlines():
            # 5: wan: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 ...
            fields = line.split(": ", 2)
            if len(fields) > 1 and fields[1].split("@")[0] == name:
                return True
        return False

    def link_exists(self, name: str) -> bool:
        return self.runner.run(["ip", "link", "show", "dev", name]).ok

    def create_bridge(
        self, name: str, vlan_filtering: bool = False, default_pvid: int | None = None
    ) -> CommandResult:
        argv = ["ip", "link", "add", "name", name, "type", "bridge"]
        if vlan_filtering:
            argv += ["vlan_filtering", "1"]
        if default_pvid is not None:
            argv += ["vlan_default_pvid", str(default_pvid)]
        return self.runner.run(argv, privileged=True)

    def delete_bridge(self, name: str) -> CommandResult:
        return self.runner.run(
            ["ip", "link", "delete", name, "type", "bridge"], privileged=True
        )

    def set_link_up(self, name: str, up: bool = True) -> CommandResult:
        return self.runner.run(
            ["ip", "link", "set", name, "up" if up else "down"], privileged=True
        )

    def rename_link(self, name: str, new_name: str) -> CommandResult:
        return self.runner.run(
            ["ip", "link", "set", name, "name", new_name], privileged=True
        )

    def flush_addresses(self, name: str) -> CommandResult:
        return self.runner.run(["ip", "addr", "flush", "dev", name], privileged=True)

    def set_vlan_filtering(self, name: str, enabled: bool = True) -> CommandResult:
        return self.runner.run(
            ["ip", "link", "set", name, "type", "bridge",
             "vlan_filtering", "1" if enabled else "0"],
            privileged=True,
        )

    def vlan_filtering_enabled(self, name: str) -> bool:
        try:
            value = (self.sysfs / name / "bridge" / "vlan_filtering").read_text()
        except OSError:
            return False
        return value.strip() == "1"

    def disable_ipv6_ra(self, name: str) -> CommandResult:
        return self.runner.run(
            ["sysctl", "-w", f"net.ipv6.conf.{name}.accept_ra=0"], privileged=True
        )

    def module_loaded(self, module: str) -> bool:
        result = self.runner.run(["lsmod"])
        return any(
            line.split()[0] == module
            for line in result.stdout.splitlines()
            if line.strip()
        )

    def load_module(self, module: str, *params: str) -> CommandResult:
        return self.runner.run(["modprobe", module, *params], privileged=True)

    def unload_module(self, module: str) -> CommandResult:
        return self.runner.run(["modprobe", "-r", module], privileged=True)


class IptablesFirewallController(FirewallController):
    """NAT rules through iptables"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _nat(self, op: str, rule: NatRule) -> CommandResult:
        return self.runner.run(
            ["iptables", "-t", "nat", op, rule.chain, *rule.spec()], privileged=True
        )

    def nat_rule_exists(self, rule: NatRule) -> bool:
        return self._nat("-C", rule).ok

    def add_nat_rule(self, rule: NatRule) -> CommandResult:
        return self._nat("-A", rule)

    def delete_nat_rule(self, rule: NatRule) -> CommandResult:
        return self._nat("-D", rule)

    def lxd_nat_present(self, network: str) -> bool:
        result = self.runner.run(["iptables", "-t", "nat", "-L", "-v"], privileged=True)
        return f"generated for LXD network {network}" in result.stdout


class LxcContainerController(ContainerController):
    """containers, images and profiles through the lxc client"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def lxd_version(self) -> str | None:
        if shutil.which("lxd") is None:
            return None
        result = self.runner.run(["lxd", "--version"])
        return result.stdout.strip() if result.ok else None

    def image_exists(self, alias: str) -> bool:
        return self.runner.run(["lxc", "image", "info", alias]).ok

    def build_image(self, script: str) -> CommandResult:
        return self.runner.run([script])

    def profile_exists(self, name: str) -> bool:
        return self.runner.run(["lxc", "profile", "show", name]).ok

    def profile_create(self, name: str) -> CommandResult:
        return self.runner.run(["lxc", "profile", "create", name])

    def profile_copy(self, source: str, name: str) -> CommandResult:
        return self.runner.run(["lxc", "profile", "copy", source, name])

    def profile_edit(self, name: str, yaml_text: str) -> CommandResult:
        return self.runner.run(["lxc", "profile", "edit", name], input_text=yaml_text)

    def profile_delete(self, name: str) -> CommandResult:
        return self.runner.run(["lxc", "profile", "delete", name])

    def profile_set(self, name: str, key: str, value: str) -> CommandResult:
        return self.runner.run(["lxc", "profile", "set", name, f"{key}={value}"])

    def profile_device_add(
        self, name: str, device: str, dev_type: str, **props: str
    ) -> CommandResult:
        settings = [f"{key}={value}" for key, value in props.items()]
        return self.runner.run(
            ["lxc", "profile", "device", "add", name, device, dev_type, *settings]
        )

    def profile_device_remove(self, name: str, device: str) -> CommandResult:
        return self.runner.run(["lxc", "profile", "device", "remove", name, device])

    def container_exists(self, name: str) -> bool:
        return self.runner.run(["lxc", "info", name]).ok

    def delete(self, name: str) -> CommandResult:
        return self.runner.run(["lxc", "delete", name, "-f"])

    def launch(self, image: str, name: str, profile: str) -> CommandResult:
        return self.runner.run(["lxc", "launch", image, name, "-p", profile])

    def restart(self, name: str) -> CommandResult:
        return self.runner.run(["lxc", "restart", name])

    def exec(
        self, name: str, argv: list[str], input_text: str | None = None
    ) -> CommandResult:
        return self.runner.run(["lxc", "exec", name, "--", *argv], input_text=input_text)

    def file_push(
        self, source: str, name: str, path: str, uid: int = 0, gid: int = 0, mode: str = "644"
    ) -> CommandResult:
        return self.runner.run(
            ["lxc", "file", "push", source, f"{name}{path}",
             "--uid", str(uid), "--gid", str(gid), "--mode", mode]
        )

    def ipv4_address(self, name: str) -> str | None:
        result = self.runner.run(["lxc", "list", name, "-c", "4", "--format", "csv"])
        if not result.ok or not result.stdout.strip():
            return None
        # "10.10.10.200 (eth0)"
        return result.stdout.strip().strip('"').split()[0]
