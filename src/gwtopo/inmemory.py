"""In-process stand-in for LXD, host bridges and iptables.

InMemoryHost implements all three controllers over plain Python state. The
``--dry-run`` mode runs the real reconcilers against it, and the tests use
it to observe what the reconcilers leave behind.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from gwtopo.controllers import BridgeController, ContainerController, FirewallController
from gwtopo.models import CommandResult, NatRule

_LOGGER = logging.getLogger(__name__)

_IPV4_CIDR = re.compile(r"\b(\d{1,3}(?:\.\d{1,3}){3})/\d{1,2}\b")


@dataclass
class MemLink:
    """a host link, bridges are the only links gwtopo creates"""

    name: str
    bridge: bool = True
    up: bool = False
    vlan_filtering: bool = False
    default_pvid: int | None = None
    accept_ra: bool = True
    addresses: list[str] = field(default_factory=list)


@dataclass
class MemProfile:
    name: str
    config: dict[str, str] = field(default_factory=dict)
    devices: dict[str, dict[str, str]] = field(default_factory=dict)
    yaml: str = ""


@dataclass
class MemContainer:
    name: str
    image: str
    profile: str
    running: bool = True
    reachable: bool = True
    boot_polls: int | None = 0
    probes: int = 0
    ipv4: str | None = None
    applied_network: str | None = None
    files: dict[str, str] = field(default_factory=dict)
    services: dict[str, set[str]] = field(default_factory=dict)
    commands: list[list[str]] = field(default_factory=list)
    restarts: int = 0


class InMemoryHost(BridgeController, FirewallController, ContainerController):
    """all control planes of one host, held in memory

    ``fail`` names controller methods that report a failure instead of
    acting. ``boot_polls`` is how many readiness probes fail before a newly
    launched container reports ready (None: never). ``reachable`` is the
    network state of newly launched containers.
    """

    def __init__(
        self,
        version: str | None = "5.21.1",
        boot_polls: int | None = 0,
        reachable: bool = True,
    ):
        self.version = version
        self.boot_polls = boot_polls
        self.reachable = reachable
        self.fail: set[str] = set()
        self.history: list[str] = []
        self.links: dict[str, MemLink] = {"lxdbr0": MemLink("lxdbr0", up=True)}
        self.lxd_networks: dict[str, dict[str, str]] = {"lxdbr0": {}}
        self.lxd_nat: set[str] = {"lxdbr0"}
        self.nat_rules: list[NatRule] = []
        self.modules: dict[str, tuple[str, ...]] = {}
        self.images: set[str] = set()
        self.image_scripts: dict[str, str] = {}
        self.profiles: dict[str, MemProfile] = {"default": MemProfile("default")}
        self.containers: dict[str, MemContainer] = {}

    def _do(self, op: str, detail: str) -> CommandResult:
        self.history.append(f"{op} {detail}")
        _LOGGER.info("[dry-run] %s %s", op, detail)
        if op in self.fail:
            return CommandResult(1, "", f"{op} failed", [op, detail])
        return CommandResult(0, "", "", [op, detail])

    @staticmethod
    def _error(msg: str) -> CommandResult:
        return CommandResult(1, "", msg)

    # bridges

    def lxd_network_exists(self, name: str) -> bool:
        return name in self.lxd_networks

    def lxd_network_create(self, name: str) -> CommandResult:
        if name in self.lxd_networks:
            return self._error(f"network {name} already exists")
        result = self._do("lxd_network_create", name)
        if result.ok:
            self.lxd_networks[name] = {}
            self.lxd_nat.add(name)
            self.links[name] = MemLink(name, up=True)
        return result

    def lxd_network_set(self, name: str, key: str, value: str) -> CommandResult:
        if name not in self.lxd_networks:
            return self._error(f"network {name} not found")
        result = self._do("lxd_network_set", f"{name} {key}={value}")
        if result.ok:
            self.lxd_networks[name][key] = value
            if key == "ipv4.nat":
                if value == "true":
                    self.lxd_nat.add(name)
                else:
                    self.lxd_nat.discard(name)
        return result

    def lxd_network_delete(self, name: str) -> CommandResult:
        if name not in self.lxd_networks:
            return self._error(f"network {name} not found")
        result = self._do("lxd_network_delete", name)
        if result.ok:
            del self.lxd_networks[name]
            self.lxd_nat.discard(name)
            self.links.pop(name, None)
        return result

    def bridge_exists(self, name: str) -> bool:
        link = self.links.get(name)
        return link is not None and link.bridge

    def link_exists(self, name: str) -> bool:
        return name in self.links

    def create_bridge(
        self, name: str, vlan_filtering: bool = False, default_pvid: int | None = None
    ) -> CommandResult:
        if name in self.links:
            return self._error(f"{name}: file exists")
        result = self._do("create_bridge", name)
        if result.ok:
            self.links[name] = MemLink(
                name, vlan_filtering=vlan_filtering, default_pvid=default_pvid
            )
        return result

    def delete_bridge(self, name: str) -> CommandResult:
        if not self.bridge_exists(name):
            return self._error(f"{name}: cannot find device")
        result = self._do("delete_bridge", name)
        if result.ok:
            del self.links[name]
        return result

    def set_link_up(self, name: str, up: bool = True) -> CommandResult:
        if name not in self.links:
            return self._error(f"{name}: cannot find device")
        result = self._do("set_link_up", f"{name} {'up' if up else 'down'}")
        if result.ok:
            self.links[name].up = up
        return result

    def rename_link(self, name: str, new_name: str) -> CommandResult:
        if name not in self.links or new_name in self.links:
            return self._error(f"cannot rename {name} to {new_name}")
        result = self._do("rename_link", f"{name} {new_name}")
        if result.ok:
            link = self.links.pop(name)
            link.name = new_name
            self.links[new_name] = link
        return result

    def flush_addresses(self, name: str) -> CommandResult:
        if name not in self.links:
            return self._error(f"{name}: cannot find device")
        result = self._do("flush_addresses", name)
        if result.ok:
            self.links[name].addresses.clear()
        return result

    def set_vlan_filtering(self, name: str, enabled: bool = True) -> CommandResult:
        if not self.bridge_exists(name):
            return self._error(f"{name}: cannot find device")
        result = self._do("set_vlan_filtering", f"{name} {int(enabled)}")
        if result.ok:
            self.links[name].vlan_filtering = enabled
        return result

    def vlan_filtering_enabled(self, name: str) -> bool:
        return self.bridge_exists(name) and self.links[name].vlan_filtering

    def disable_ipv6_ra(self, name: str) -> CommandResult:
        if name not in self.links:
            return self._error(f"net.ipv6.conf.{name}.accept_ra: no such key")
        result = self._do("disable_ipv6_ra", name)
        if result.ok:
            self.links[name].accept_ra = False
        return result

    def module_loaded(self, module: str) -> bool:
        return module in self.modules

    def load_module(self, module: str, *params: str) -> CommandResult:
        result = self._do("load_module", " ".join((module, *params)))
        if result.ok:
            self.modules[module] = params
            if module == "mac80211_hwsim":
                radios = 2
                for param in params:
                    if param.startswith("radios="):
                        radios = int(param.split("=", 1)[1])
                for idx in range(radios):
                    self.links.setdefault(f"wlan{idx}", MemLink(f"wlan{idx}", bridge=False))
        return result

    def unload_module(self, module: str) -> CommandResult:
        if module not in self.modules:
            return self._error(f"module {module} is not loaded")
        result = self._do("unload_module", module)
        if result.ok:
            del self.modules[module]
        return result

    # firewall

    def nat_rule_exists(self, rule: NatRule) -> bool:
        return rule in self.nat_rules

    def add_nat_rule(self, rule: NatRule) -> CommandResult:
        result = self._do("add_nat_rule", " ".join(rule.spec()))
        if result.ok:
            self.nat_rules.append(rule)
        return result

    def delete_nat_rule(self, rule: NatRule) -> CommandResult:
        if rule not in self.nat_rules:
            return self._error("bad rule (does a matching rule exist in that chain?)")
        result = self._do("delete_nat_rule", " ".join(rule.spec()))
        if result.ok:
            self.nat_rules.remove(rule)
        return result

    def lxd_nat_present(self, network: str) -> bool:
        return network in self.lxd_nat

    # containers

    def lxd_version(self) -> str | None:
        return self.version

    def image_exists(self, alias: str) -> bool:
        return alias in self.images

    def build_image(self, script: str) -> CommandResult:
        result = self._do("build_image", script)
        alias = self.image_scripts.get(Path(script).name)
        if result.ok and alias:
            self.images.add(alias)
        return result

    def profile_exists(self, name: str) -> bool:
        return name in self.profiles

    def profile_create(self, name: str) -> CommandResult:
        if name in self.profiles:
            return self._error(f"profile {name} already exists")
        result = self._do("profile_create", name)
        if result.ok:
            self.profiles[name] = MemProfile(name)
        return result

    def profile_copy(self, source: str, name: str) -> CommandResult:
        if source not in self.profiles:
            return self._error(f"profile {source} not found")
        if name in self.profiles:
            return self._error(f"profile {name} already exists")
        result = self._do("profile_copy", f"{source} {name}")
        if result.ok:
            base = self.profiles[source]
            self.profiles[name] = MemProfile(
                name,
                config=dict(base.config),
                devices={k: dict(v) for k, v in base.devices.items()},
                yaml=base.yaml,
            )
        return result

    def profile_edit(self, name: str, yaml_text: str) -> CommandResult:
        if name not in self.profiles:
            return self._error(f"profile {name} not found")
        result = self._do("profile_edit", name)
        if result.ok:
            self.profiles[name].yaml = yaml_text
        return result

    def profile_delete(self, name: str) -> CommandResult:
        if name not in self.profiles:
            return self._error(f"profile {name} not found")
        if any(c.profile == name for c in self.containers.values()):
            return self._error(f"profile {name} is currently in use")
        result = self._do("profile_delete", name)
        if result.ok:
            del self.profiles[name]
        return result

    def profile_set(self, name: str, key: str, value: str) -> CommandResult:
        if name not in self.profiles:
            return self._error(f"profile {name} not found")
        result = self._do("profile_set", f"{name} {key}={value}")
        if result.ok:
            self.profiles[name].config[key] = value
        return result

    def profile_device_add(
        self, name: str, device: str, dev_type: str, **props: str
    ) -> CommandResult:
        profile = self.profiles.get(name)
        if profile is None:
            return self._error(f"profile {name} not found")
        if device in profile.devices:
            return self._error(f"device {device} already exists")
        result = self._do("profile_device_add", f"{name} {device} {dev_type}")
        if result.ok:
            profile.devices[device] = {"type": dev_type, **props}
        return result

    def profile_device_remove(self, name: str, device: str) -> CommandResult:
        profile = self.profiles.get(name)
        if profile is None or device not in profile.devices:
            return self._error(f"device {device} doesn't exist")
        result = self._do("profile_device_remove", f"{name} {device}")
        if result.ok:
            del profile.devices[device]
        return result

    def container_exists(self, name: str) -> bool:
        return name in self.containers

    def delete(self, name: str) -> CommandResult:
        if name not in self.containers:
            return self._error(f"instance {name} not found")
        result = self._do("delete", name)
        if result.ok:
            del self.containers[name]
        return result

    def launch(self, image: str, name: str, profile: str) -> CommandResult:
        if image not in self.images:
            return self._error(f"image {image} not found")
        if profile not in self.profiles:
            return self._error(f"profile {profile} not found")
        if name in self.containers:
            return self._error(f"instance {name} already exists")
        result = self._do("launch", f"{image} {name} -p {profile}")
        if result.ok:
            self.containers[name] = MemContainer(
                name,
                image,
                profile,
                reachable=self.reachable,
                boot_polls=self.boot_polls,
            )
        return result

    def restart(self, name: str) -> CommandResult:
        if name not in self.containers:
            return self._error(f"instance {name} not found")
        result = self._do("restart", name)
        if result.ok:
            self.containers[name].restarts += 1
        return result

    def exec(
        self, name: str, argv: list[str], input_text: str | None = None
    ) -> CommandResult:
        container = self.containers.get(name)
        if container is None or not container.running:
            return self._error(f"instance {name} is not running")
        container.commands.append(list(argv))
        if "exec" in self.fail:
            return self._do("exec", f"{name} {' '.join(argv)}")
        self.history.append(f"exec {name} {' '.join(argv)}")
        return self._run_in(container, argv)

    def _run_in(self, container: MemContainer, argv: list[str]) -> CommandResult:
        prog = argv[0] if argv else ""
        if prog == "test" and argv[1:2] == ["-f"]:
            return self._probe(container, argv[2])
        if prog == "ping":
            return CommandResult(0 if container.reachable else 1, "", "", argv)
        if prog == "netplan" and argv[1:2] == ["apply"]:
            descriptors = [p for p in sorted(container.files) if p.startswith("/etc/netplan/")]
            if not descriptors:
                return CommandResult(1, "", "no netplan configuration", argv)
            container.applied_network = container.files[descriptors[-1]]
            found = _IPV4_CIDR.search(container.applied_network)
            container.ipv4 = found.group(1) if found else None
            return CommandResult(0, "", "", argv)
        if prog == "systemctl" and len(argv) > 2:
            action, unit = argv[1], argv[2]
            states = container.services.setdefault(unit, set())
            if action in ("enable", "start"):
                states.add("enabled" if action == "enable" else "active")
            elif action == "status":
                active = "active" in states
                return CommandResult(
                    0 if active else 3,
                    f"{unit}: {'active (running)' if active else 'inactive (dead)'}",
                    "",
                    argv,
                )
        return CommandResult(0, "", "", argv)

    def _probe(self, container: MemContainer, path: str) -> CommandResult:
        if path in container.files:
            return CommandResult(0)
        container.probes += 1
        if container.boot_polls is not None and container.probes > container.boot_polls:
            container.files[path] = ""
            return CommandResult(0)
        return CommandResult(1)

    def file_push(
        self, source: str, name: str, path: str, uid: int = 0, gid: int = 0, mode: str = "644"
    ) -> CommandResult:
        container = self.containers.get(name)
        if container is None:
            return self._error(f"instance {name} not found")
        try:
            content = Path(source).read_text(encoding="utf-8")
        except OSError as exc:
            return self._error(str(exc))
        result = self._do("file_push", f"{source} {name}{path}")
        if result.ok:
            container.files[path] = content
        return result

    def ipv4_address(self, name: str) -> str | None:
        container = self.containers.get(name)
        return container.ipv4 if container else None
