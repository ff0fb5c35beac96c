from __future__ import annotations

import logging

import pytest

from gwtopo.config import Config
from gwtopo.macaddr import primary_address, secondary_address
from gwtopo.main import create_argparser, create_host, get_log_level, main


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    """config.toml and the descriptor tmp dir resolve inside tmp_path"""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.mark.parametrize(
    "name, level, unknown",
    [
        ("debug", logging.DEBUG, False),
        ("WARN", logging.WARNING, False),
        ("critical", logging.CRITICAL, False),
        ("chatty", logging.WARNING, True),
    ],
)
def test_get_log_level(name, level, unknown) -> None:
    assert get_log_level(name) == (level, unknown)


def test_hash(capsys) -> None:
    assert main(["hash", "mv2plus-r22-9-05"]) == 0
    assert capsys.readouterr().out == "2116\n"


def test_unhash(capsys) -> None:
    assert main(["unhash", "2116"]) == 0
    assert capsys.readouterr().out == "mv2plus-r22-9-05\n"


@pytest.mark.parametrize("argv", [["hash", "mv4-r21-7"], ["unhash", "3131"], ["unhash", "1041"]])
def test_invalid_input_fails(argv) -> None:
    assert main(argv) == 1


def test_mac(capsys) -> None:
    assert main(["mac", "genieacs"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [primary_address("genieacs"), secondary_address("genieacs")]


def test_no_command() -> None:
    assert main([]) == 1


def test_write_config(workdir) -> None:
    assert main(["-w", "-c", "custom.toml"]) == 0
    assert Config.load(str(workdir / "custom.toml")) == Config()


def test_invalid_vlan() -> None:
    with pytest.raises(SystemExit):
        create_argparser().parse_args(["client-lan", "vcpe-p1", "--vlan", "4095"])


def test_dry_run_bridges() -> None:
    assert main(["--dry-run", "bridges"]) == 0


def test_dry_run_unsupported_bridge() -> None:
    assert main(["--dry-run", "bridges", "lan-p1", "bogus"]) == 1


def test_dry_run_check_reports_missing(capsys) -> None:
    assert main(["--dry-run", "bridges", "--check", "wan"]) == 1
    assert "Bridge wan is missing or misconfigured" in capsys.readouterr().out


def test_dry_run_remove_bridge() -> None:
    assert main(["--dry-run", "remove-bridge", "wan"]) == 0


def test_dry_run_bootstrap(workdir) -> None:
    assert main(["--dry-run", "bootstrap"]) == 0
    assert (workdir / "tmp").is_dir()


def test_dry_run_client_lan() -> None:
    assert main(["--dry-run", "client-lan", "vcpe-p1", "--vlan", "200"]) == 0


def test_dry_run_client_lan_bad_device() -> None:
    assert main(["--dry-run", "client-lan", "vcpe"]) == 1


def test_dry_run_genieacs(workdir, capsys) -> None:
    assert main(["--dry-run", "genieacs"]) == 0
    assert (workdir / "tmp" / "genieacs-50-cloud-init.yaml").is_file()
    assert "http://10.10.10.200:3000" in capsys.readouterr().out


@pytest.mark.parametrize("timeout, expected", [(0, None), (600, 600)])
def test_command_timeout_is_opt_in(timeout, expected) -> None:
    host = create_host(Config(command_timeout=timeout))
    assert host.containers.runner.timeout == expected
    assert host.bridges.runner.timeout == expected


def test_dry_run_client_lan_derived_vlan() -> None:
    assert main(["--dry-run", "client-lan", "mv3-r22-20-09-p2", "--derive-vlan"]) == 0


def test_vlan_and_derived_vlan_exclude_each_other() -> None:
    with pytest.raises(SystemExit):
        create_argparser().parse_args(
            ["client-lan", "mv1-r21-7-p1", "--vlan", "200", "--derive-vlan"]
        )
