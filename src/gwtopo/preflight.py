"""Host checks that run before anything is created."""

import logging
import time
from pathlib import Path
from typing import Callable

from gwtopo.bridges import BridgeReconciler, load_bridge_specs
from gwtopo.config import Config
from gwtopo.controllers import BridgeController, ContainerController
from gwtopo.models import PreconditionError

_LOGGER = logging.getLogger(__name__)

HWSIM_MODULE = "mac80211_hwsim"
HWSIM_RADIOS = 5
VIRT_WLANS = 4


def check_project_root(root: str, cwd: str | None = None) -> Path:
    """relative descriptor paths only resolve from inside the project root"""
    root_path = Path(root).resolve()
    cwd_path = Path(cwd or Path.cwd()).resolve()
    if cwd_path != root_path and root_path not in cwd_path.parents:
        raise PreconditionError(
            f"run from inside {root_path}, current directory is {cwd_path}"
        )
    return root_path


def ensure_tmp_dir(root: str) -> Path:
    tmp = Path(root) / "tmp"
    tmp.mkdir(parents=True, exist_ok=True)
    return tmp


def check_lxd_version(ctl: ContainerController, supported: list[int]) -> str:
    """the LXD version, raises PreconditionError if missing or unsupported"""
    version = ctl.lxd_version()
    if not version:
        raise PreconditionError("LXD is not installed.")
    try:
        major = int(version.split(".", 1)[0])
    except ValueError:
        raise PreconditionError(f"cannot parse LXD version {version!r}") from None
    if major not in supported:
        raise PreconditionError(
            f"LXD {version} is not supported, need major version "
            + " or ".join(str(v) for v in supported)
        )
    _LOGGER.info("LXD version %s", version)
    return version


def ensure_virt_wlan(
    ctl: BridgeController, sleep: Callable[[float], None] = time.sleep
) -> list[str]:
    """provide virt-wlan0..3 from simulated radios, returns renamed links"""
    names = [f"virt-wlan{idx}" for idx in range(VIRT_WLANS)]
    if all(ctl.link_exists(name) for name in names):
        return []

    _LOGGER.warning("Virtual wlan interfaces are missing. Creating them now...")
    if ctl.module_loaded(HWSIM_MODULE):
        _LOGGER.info("Unloading %s module...", HWSIM_MODULE)
        ctl.unload_module(HWSIM_MODULE)
    _LOGGER.info("Loading %s with %d radios...", HWSIM_MODULE, HWSIM_RADIOS)
    ctl.load_module(HWSIM_MODULE, f"radios={HWSIM_RADIOS}").check()
    sleep(1)

    renamed = []
    for idx in range(HWSIM_RADIOS):
        wlan = f"wlan{idx}"
        if not ctl.link_exists(wlan):
            _LOGGER.warning("%s was not created by %s", wlan, HWSIM_MODULE)
            continue
        _LOGGER.info("Renaming %s to virt-%s", wlan, wlan)
        ctl.set_link_up(wlan, up=False)
        ctl.rename_link(wlan, f"virt-{wlan}").check()
        ctl.set_link_up(f"virt-{wlan}")
        renamed.append(f"virt-{wlan}")
    return renamed


def bootstrap(
    reconciler: BridgeReconciler,
    containers: ContainerController,
    cfg: Config,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """version check, missing bridges, virtual radios"""
    ensure_tmp_dir(cfg.root)
    check_lxd_version(containers, cfg.lxd_versions)

    ok = True
    if reconciler.missing_bridges(cfg.bridges):
        _LOGGER.warning("Required bridges are missing. Creating bridges now...")
        specs, rejected = load_bridge_specs(cfg.bridges)
        ok = reconciler.reconcile_all(specs) and not rejected
    ensure_virt_wlan(reconciler.bridges, sleep=sleep)
    return ok
