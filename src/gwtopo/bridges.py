"""
File Chain:
Doc Version: v1.0.0

- Called by: main.py, preflight.py
- Purpose: Bring the managed bridges into their declared state

gwtopo Bridge Reconciler - Service, WAN and LAN Bridges

PURPOSE:
    Creates or repairs the bridges of the emulated topology. Reconciliation
    reasserts the target state instead of diffing it, so running it twice
    leaves the same live state behind.

WHO READS ME:
    - main.py: bridges, remove-bridge and bootstrap commands
    - preflight.py: bootstrap creates bridges when some are missing

WHO I READ:
    - config.py: service addressing, NAT policy
    - controllers.py: BridgeController, FirewallController
    - models.py: BridgeKind, BridgeSpec, NatRule, UnsupportedBridge

BRIDGE KINDS:
    - lxdbr1 (SERVICE): LXD managed, static IPv4/IPv6, no LXD DHCP or NAT,
      one host MASQUERADE rule for the service subnet
    - wan, cm (WAN): plain L2 bridge, no IPv6 RA, no addresses
    - lan-p1..4, br-wlan0..1, wanoe (LAN): VLAN filtering, default PVID 1
"""

import logging
import re

import enlighten

from gwtopo.colorlog import SEPARATOR
from gwtopo.config import Config
from gwtopo.controllers import BridgeController, FirewallController
from gwtopo.models import BridgeKind, BridgeSpec, NatRule, UnsupportedBridge

_LOGGER = logging.getLogger(__name__)

SERVICE_BRIDGE = "lxdbr1"
LXD_DEFAULT_BRIDGE = "lxdbr0"

_KINDS = (
    (re.compile(r"^lxdbr1$"), BridgeKind.SERVICE),
    (re.compile(r"^(wan|cm)$"), BridgeKind.WAN),
    (re.compile(r"^(lan-p[1-4]|br-wlan[01]|wanoe)$"), BridgeKind.LAN),
)


def classify_bridge(name: str) -> BridgeKind:
    """the kind of a managed bridge, raises UnsupportedBridge"""
    for pattern, kind in _KINDS:
        if pattern.match(name):
            return kind
    raise UnsupportedBridge(f"Unsupported bridge name: {name}")


def load_bridge_specs(names: list[str]) -> tuple[list[BridgeSpec], list[str]]:
    """classify bridge names once, returns the specs and the rejected names"""
    specs: list[BridgeSpec] = []
    rejected: list[str] = []
    for name in names:
        try:
            specs.append(BridgeSpec(name, classify_bridge(name)))
        except UnsupportedBridge as exc:
            _LOGGER.error("Error: %s", exc)
            rejected.append(name)
    return specs, rejected


def service_nat_rule(cfg: Config) -> NatRule:
    """masquerade service subnet traffic unless it leaves through the
    egress interface or stays within the excluded destination"""
    return NatRule(
        source=str(cfg.nat_source),
        egress=cfg.nat_egress,
        exclude=str(cfg.nat_exclude),
    )


class BridgeReconciler:
    """reconciles bridges against a bridge and a firewall controller"""

    def __init__(
        self,
        bridges: BridgeController,
        firewall: FirewallController,
        cfg: Config,
        progress: bool = False,
    ):
        self.bridges = bridges
        self.firewall = firewall
        self.config = cfg
        self.progress = progress

    def reconcile(self, spec: BridgeSpec) -> bool:
        """bring one bridge into its declared state, False on hard failure"""
        if spec.kind is BridgeKind.SERVICE:
            return self._reconcile_service(spec.name)
        if spec.kind is BridgeKind.WAN:
            return self._reconcile_wan(spec.name)
        return self._reconcile_lan(spec.name)

    def reconcile_all(self, specs: list[BridgeSpec]) -> bool:
        """reconcile every bridge, a failing bridge does not stop its siblings"""
        manager = None
        counter = None
        if self.progress:
            manager = enlighten.get_manager()
            counter = manager.counter(
                total=len(specs), desc="bridges", unit="bridges", leave=False, color="cyan"
            )
        ok = True
        for spec in specs:
            _LOGGER.info(SEPARATOR)
            if not self.reconcile(spec):
                ok = False
            if counter:
                counter.update()
        _LOGGER.info(SEPARATOR)
        if counter:
            counter.close()
        if manager:
            manager.stop()
        return ok

    def _reconcile_service(self, name: str) -> bool:
        cfg = self.config
        if not self.bridges.lxd_network_exists(name):
            _LOGGER.warning("Bridge %s does not exist. Creating it...", name)
            result = self.bridges.lxd_network_create(name)
            if not result.ok:
                _LOGGER.error("Failed to create bridge %s: %s", name, result.stderr.strip())
                return False
        else:
            _LOGGER.warning("Bridge %s exists. Reapplying settings...", name)

        settings = [
            ("ipv4.address", cfg.service_ipv4),
            ("ipv4.dhcp", "false"),
            ("ipv6.address", cfg.service_ipv6),
            ("ipv6.dhcp", "false"),
            ("ipv6.dhcp.stateful", "true"),
        ]
        nat = "false" if cfg.nat_passthrough else "true"
        settings += [("ipv4.nat", nat), ("ipv6.nat", nat)]

        ok = True
        for key, value in settings:
            result = self.bridges.lxd_network_set(name, key, value)
            if not result.ok:
                _LOGGER.error("Bridge %s: failed to set %s: %s", name, key, result.stderr.strip())
                ok = False

        if cfg.nat_passthrough:
            rule = service_nat_rule(cfg)
            if self.firewall.nat_rule_exists(rule):
                _LOGGER.info("Bridge %s: NAT rule exists.", name)
            else:
                _LOGGER.warning("Bridge %s: NAT rule does not exist. Adding it.", name)
                result = self.firewall.add_nat_rule(rule)
                if not result.ok:
                    _LOGGER.error("Bridge %s: failed to add NAT rule: %s", name, result.stderr.strip())
                    ok = False
        return ok

    def _reconcile_wan(self, name: str) -> bool:
        if self.bridges.bridge_exists(name):
            _LOGGER.info("Bridge %s exists, flushing IP addresses", name)
            if not self.bridges.flush_addresses(name).ok:
                _LOGGER.warning("Failed to flush IP addresses from %s", name)
            return True

        _LOGGER.warning("Creating bridge: %s", name)
        ok = True
        if not self.bridges.create_bridge(name).ok:
            _LOGGER.error("Failed to create bridge %s", name)
            ok = False
        if not self.bridges.disable_ipv6_ra(name).ok:
            _LOGGER.warning("Failed to disable IPv6 RA on %s", name)
        if not self.bridges.set_link_up(name).ok:
            _LOGGER.error("Failed to bring up bridge %s", name)
            ok = False
        return ok

    def _reconcile_lan(self, name: str) -> bool:
        if not self.bridges.bridge_exists(name):
            _LOGGER.warning("Creating bridge: %s", name)
            ok = True
            if not self.bridges.create_bridge(name, vlan_filtering=True, default_pvid=1).ok:
                _LOGGER.error("Failed to create VLAN-aware bridge %s", name)
                ok = False
            if not self.bridges.set_link_up(name).ok:
                _LOGGER.error("Failed to bring up bridge %s", name)
                ok = False
            if not self.bridges.vlan_filtering_enabled(name):
                _LOGGER.warning("VLAN filtering might not be enabled on %s", name)
            return ok

        _LOGGER.info("Bridge %s exists, flushing IP addresses", name)
        if not self.bridges.flush_addresses(name).ok:
            _LOGGER.warning("Failed to flush IP addresses from %s", name)
        if self.bridges.vlan_filtering_enabled(name):
            _LOGGER.info("VLAN filtering is enabled on existing bridge %s", name)
            return True

        _LOGGER.warning("Enabling VLAN filtering on existing bridge %s", name)
        ok = self.bridges.set_link_up(name, up=False).ok
        ok = self.bridges.set_vlan_filtering(name).ok and ok
        ok = self.bridges.set_link_up(name).ok and ok
        if not ok:
            _LOGGER.error("Failed to enable VLAN filtering on %s", name)
        return ok

    def missing_bridges(self, names: list[str]) -> list[str]:
        """managed bridges and LXD's default bridge that do not exist"""
        missing = []
        for name in [*names, LXD_DEFAULT_BRIDGE]:
            if not self.bridges.link_exists(name):
                _LOGGER.warning("Bridge %s does not exist", name)
                missing.append(name)
        return missing

    def verify(self, spec: BridgeSpec) -> bool:
        """True if the bridge exists with the structure its kind requires"""
        if spec.kind is BridgeKind.SERVICE:
            return self.bridges.lxd_network_exists(spec.name)
        if not self.bridges.bridge_exists(spec.name):
            return False
        if spec.kind is BridgeKind.LAN:
            return self.bridges.vlan_filtering_enabled(spec.name)
        return True

    def remove(self, spec: BridgeSpec) -> bool:
        """delete a bridge, and the service NAT rule with the service bridge"""
        ok = True
        if spec.kind is BridgeKind.SERVICE:
            result = self.bridges.lxd_network_delete(spec.name)
            if result.ok:
                _LOGGER.warning("Bridge %s deleted successfully.", spec.name)
            else:
                _LOGGER.error("Failed to delete bridge %s: %s", spec.name, result.stderr.strip())
                ok = False
            rule = service_nat_rule(self.config)
            if self.firewall.nat_rule_exists(rule):
                _LOGGER.warning("Bridge %s: NAT rule exists. Deleting the rule.", spec.name)
                ok = self.firewall.delete_nat_rule(rule).ok and ok
            else:
                _LOGGER.info("Bridge %s: NAT rule does not exist.", spec.name)
        elif self.bridges.bridge_exists(spec.name):
            self.bridges.set_link_up(spec.name, up=False)
            ok = self.bridges.delete_bridge(spec.name).ok
            if ok:
                _LOGGER.warning("Bridge %s deleted successfully.", spec.name)
            else:
                _LOGGER.error("Failed to delete bridge %s", spec.name)
        return ok

    def lxd_default_nat_present(self) -> bool:
        present = self.firewall.lxd_nat_present(LXD_DEFAULT_BRIDGE)
        if present:
            _LOGGER.info("LXD network rule for %s found", LXD_DEFAULT_BRIDGE)
        else:
            _LOGGER.warning("LXD network rule for %s not found", LXD_DEFAULT_BRIDGE)
        return present
