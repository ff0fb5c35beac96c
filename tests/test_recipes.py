from __future__ import annotations

import pytest

from gwtopo.containers import ContainerReconciler
from gwtopo.models import InvalidIdentifier
from gwtopo.recipes import (
    GENIEACS,
    GENIEACS_SERVICES,
    build_script,
    client_spec,
    genieacs_netplan,
    setup_client_lan,
    setup_genieacs,
)


def test_build_script_in_project_tree(cfg, tmp_path) -> None:
    assert build_script(cfg, "client-base.sh") == str(tmp_path / "gen" / "client-base.sh")


def test_client_spec_defaults(cfg) -> None:
    spec = client_spec(cfg, "mv2plus-r22-9-05-p3")
    assert spec.name == "client-lan-mv2plus-r22-9-05-p3"
    assert spec.port == 3
    assert spec.bridge == "lan-p3"
    assert (spec.vlan, spec.memory, spec.cpu) == (100, "128MB", "1")


def test_client_spec_overrides(cfg) -> None:
    spec = client_spec(cfg, "vcpe-p1", vlan=200, memory="256MB", cpu="2")
    assert (spec.vlan, spec.memory, spec.cpu) == (200, "256MB", "2")


def test_client_spec_needs_lan_port(cfg) -> None:
    with pytest.raises(InvalidIdentifier):
        client_spec(cfg, "vcpe-p9")


def test_setup_client_lan(container_reconciler, host) -> None:
    spec = setup_client_lan(container_reconciler, "vcpe-p2", vlan=300)
    profile = host.profiles[spec.name]
    assert profile.devices["eth0"]["parent"] == "lan-p2"
    assert profile.devices["eth0"]["vlan"] == "300"
    assert spec.name in host.containers


def test_genieacs_netplan(cfg) -> None:
    text = genieacs_netplan(cfg)
    assert "- 10.10.10.200/24" in text
    assert "- 2001:dbf:0:1::200/64" in text
    assert "via: 10.10.10.1\n" in text
    assert "via: 2001:dbf:0:1::1\n" in text


def test_setup_genieacs(container_reconciler, host, sleeps, cfg, tmp_path, capsys) -> None:
    info = setup_genieacs(container_reconciler)

    container = host.containers[GENIEACS]
    assert info.address == "10.10.10.200"
    assert info.ready
    assert all(info.services.values())
    assert list(info.services) == [unit for unit, _, _ in GENIEACS_SERVICES]
    assert sleeps.calls == [10, 5, 5, 5, 15]

    starts = [c[2] for c in container.commands if c[:2] == ["systemctl", "start"]]
    assert starts == ["mongod", "genieacs-cwmp", "genieacs-nbi", "genieacs-fs", "genieacs-ui"]
    assert ["timedatectl", "set-timezone", "America/Los_Angeles"] in container.commands
    assert (tmp_path / "tmp" / "genieacs-50-cloud-init.yaml").is_file()
    assert "parent: lxdbr1" in host.profiles[GENIEACS].yaml
    assert ["sh", "-c"] not in [c[:2] for c in container.commands]

    out = capsys.readouterr().out
    assert "http://10.10.10.200:3000" in out
    assert "10.10.10.200:27017" in out


def test_setup_genieacs_builds_missing_image(host, cfg, sleeps) -> None:
    host.images.discard("genieacs-base")
    host.image_scripts = {"genieacs-base.sh": "genieacs-base"}
    setup_genieacs(ContainerReconciler(host, cfg, sleep=sleeps))
    assert f"build_image {build_script(cfg, 'genieacs-base.sh')}" in host.history


def test_client_spec_derives_vlan(cfg) -> None:
    spec = client_spec(cfg, "mv2plus-r22-9-05-p3", derive_vlan=True)
    assert spec.vlan == 2116
    assert spec.bridge == "lan-p3"


@pytest.mark.parametrize("device", ["vcpe-p1", "wan-p1", "mv1-r21-7-15-p2"])
def test_client_spec_cannot_derive_vlan(cfg, device: str) -> None:
    with pytest.raises(InvalidIdentifier):
        client_spec(cfg, device, derive_vlan=True)


def test_setup_client_lan_derived_vlan(container_reconciler, host) -> None:
    spec = setup_client_lan(container_reconciler, "mv1-r22-9-p1", derive_vlan=True)
    assert host.profiles[spec.name].devices["eth0"]["vlan"] == "1111"
