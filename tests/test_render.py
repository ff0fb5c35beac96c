from __future__ import annotations

import pytest
from jinja2 import UndefinedError

from gwtopo.macaddr import primary_address
from gwtopo.models import GwtopoError
from gwtopo.render import (
    genieacs_profile,
    get_templates,
    render_template,
    static_netplan,
    write_descriptor,
)


def test_templates_are_packaged() -> None:
    assert get_templates() == ["genieacs-profile.yaml", "netplan-static.yaml"]


def test_unknown_template() -> None:
    with pytest.raises(GwtopoError, match="does not exist"):
        render_template("nothing-here")


def test_missing_context_variable() -> None:
    with pytest.raises(UndefinedError):
        render_template("netplan-static.yaml", interface="eth0")


def test_genieacs_profile(cfg) -> None:
    profile = genieacs_profile(cfg, "genieacs", "lxdbr1")
    assert "name: genieacs\n" in profile
    assert "    parent: lxdbr1\n" in profile
    assert f"    hwaddr: {primary_address('genieacs')}\n" in profile
    assert "    pool: default\n" in profile
    for port in (7547, 3000, 7557, 7567):
        assert f"listen: tcp:0.0.0.0:{port}\n" in profile
        assert f"connect: tcp:127.0.0.1:{port}\n" in profile
    assert profile.endswith("\n")


def test_static_netplan() -> None:
    text = static_netplan(
        ipv4="10.10.10.200/24",
        gateway4="10.10.10.1",
        ipv6="2001:dbf:0:1::200/64",
        gateway6="2001:dbf:0:1::1",
        nameservers=["8.8.8.8", "1.1.1.1"],
        routes=[("10.107.200.0/24", "10.10.10.107")],
    )
    assert "    eth0:\n      dhcp4: false\n      dhcp6: false\n" in text
    assert "        - 10.10.10.200/24\n        - 2001:dbf:0:1::200/64\n" in text
    assert "        - to: default\n          via: 10.10.10.1\n" in text
    assert '        - to: "::/0"\n          via: 2001:dbf:0:1::1\n' in text
    assert "        - to: 10.107.200.0/24\n          via: 10.10.10.107\n" in text
    assert "          - 8.8.8.8\n          - 1.1.1.1\n" in text


def test_static_netplan_ipv4_only() -> None:
    text = static_netplan(ipv4="192.0.2.10/24", gateway4="192.0.2.1", nameservers=[])
    assert "::/0" not in text
    assert "        - 192.0.2.10/24\n      routes:" in text


def test_write_descriptor(cfg, tmp_path) -> None:
    path = write_descriptor(cfg, "acs.yaml", "network: {}\n")
    assert path == tmp_path / "tmp" / "acs.yaml"
    assert path.read_text(encoding="utf-8") == "network: {}\n"


def test_context_may_carry_name() -> None:
    text = render_template(
        "genieacs-profile.yaml",
        name="acs",
        bridge="lxdbr1",
        pool="default",
        hwaddr=None,
        ports=[],
    )
    assert text.startswith("name: acs\n")
    assert "hwaddr" not in text
