"""
File Chain:
Doc Version: v1.0.0

- Called by: recipes.py, main.py
- Purpose: Create and recreate LXD containers and their profiles

gwtopo Container Reconciler - Delete, Recreate, Launch, Wait

PURPOSE:
    Brings containers from "possibly absent or stale" to freshly created.
    Every procedure starts by deleting any previous artifact of the same
    name, so a re-run after a partial failure starts from a clean slate.

WHO READS ME:
    - recipes.py: ACS and LAN client setup
    - main.py: builds a ContainerReconciler for the recipes

WHO I READ:
    - config.py: baseline profile, readiness marker, polling bounds
    - controllers.py: ContainerController
    - models.py: ContainerSpec, ClientSpec, CommandError, NetworkUnreachable

STANDARD CONTAINERS (create_standard_container):
    1. delete the container, missing containers are fine
    2. delete the profile, copy the baseline profile, edit it with the YAML
    3. launch from the base image with that profile
    4. optionally add the "c" clear-screen alias
    5. optionally push a netplan descriptor and apply it
    6. poll for the readiness marker, a timeout only warns

CLIENT CONTAINERS (create_client_container):
    Profile mutated in place: limits set, eth0 and root devices removed and
    re-added, eth0 bridged to lan-pN with the client VLAN.

FAILURES:
    A failing step raises CommandError and leaves earlier steps in place.
    Readiness polling is advisory, network polling raises NetworkUnreachable.
"""

import logging
import time
from pathlib import Path
from typing import Callable

import enlighten

from gwtopo.config import Config
from gwtopo.controllers import ContainerController
from gwtopo.models import (
    ClientSpec,
    CommandResult,
    ContainerSpec,
    NetworkUnreachable,
    PreconditionError,
)

_LOGGER = logging.getLogger(__name__)

ALIAS_COMMAND = (
    "sed -i '/alias c=/d' ~/.bashrc && "
    "echo 'alias c=\"clear && printf \\\"\\033[3J\\033[0m\\\"\"' >> ~/.bashrc"
)


class ContainerReconciler:
    """owns the lifecycle of the containers it is asked to create"""

    def __init__(
        self,
        containers: ContainerController,
        cfg: Config,
        sleep: Callable[[float], None] = time.sleep,
        progress: bool = False,
    ):
        self.containers = containers
        self.config = cfg
        self.sleep = sleep
        self.progress = progress

    def ensure_base_image(self, image: str, script: str | None = None) -> None:
        """build a missing base image with its build script"""
        if self.containers.image_exists(image):
            return
        _LOGGER.warning("Creating %s image", image)
        if script:
            self.containers.build_image(script).check()
        if not self.containers.image_exists(image):
            raise PreconditionError(f"base image {image} is not available")

    def delete_container(self, name: str) -> bool:
        """force delete, a missing container is not an error"""
        if not self.containers.container_exists(name):
            return False
        self.containers.delete(name).check()
        return True

    def create_container_profile(self, name: str, profile_yaml: str = "") -> None:
        """replace the profile with a copy of the baseline overwritten by yaml"""
        if self.containers.profile_exists(name):
            self.containers.profile_delete(name).check()
        self.containers.profile_copy(self.config.baseline_profile, name).check()
        if profile_yaml:
            self.containers.profile_edit(name, profile_yaml).check()

    def launch_container(self, image: str, name: str, profile: str | None = None) -> None:
        self.containers.launch(image, name, profile or name).check()

    def setup_container_alias(self, name: str) -> None:
        self.containers.exec(name, ["sh", "-c", ALIAS_COMMAND]).check()

    def setup_static_network(self, name: str, netplan_file: Path | None) -> bool:
        """push a netplan descriptor and apply it, skipped if the file is missing"""
        if not netplan_file or not Path(netplan_file).is_file():
            _LOGGER.warning("No network descriptor %s for %s", netplan_file, name)
            return False
        self.containers.file_push(
            str(netplan_file), name, self.config.netplan_path, mode="644"
        ).check()
        self.containers.exec(name, ["netplan", "apply"]).check()
        return True

    def add_common_routes(self, name: str) -> None:
        """routes towards the BNG client subnets via the service bridge"""
        self.containers.exec(
            name,
            ["nmcli", "connection", "modify", "eth0",
             "+ipv4.routes", "10.107.200.0/24 10.10.10.107"],
        ).check()
        self.containers.exec(
            name,
            ["nmcli", "connection", "modify", "eth0",
             "+ipv6.routes", "2001:dae:7:1::/64 2001:dbf:0:1::107"],
        ).check()

    def install_packages(self, name: str, *packages: str) -> None:
        if not packages:
            return
        self.containers.exec(name, ["apt-get", "update"]).check()
        self.containers.exec(name, ["apt-get", "install", "-y", *packages]).check()

    def create_systemd_service(self, name: str, service: str, unit: str) -> None:
        """write the unit body as given, reload and enable it"""
        self.containers.exec(
            name,
            ["sh", "-c", f"cat > /etc/systemd/system/{service}.service"],
            input_text=unit,
        ).check()
        self.containers.exec(name, ["systemctl", "daemon-reload"]).check()
        self.containers.exec(name, ["systemctl", "enable", service]).check()

    def start_service(self, name: str, service: str) -> None:
        self.containers.exec(name, ["systemctl", "start", service]).check()

    def service_status(self, name: str, service: str) -> CommandResult:
        return self.containers.exec(
            name, ["systemctl", "status", service, "--no-pager", "-l"]
        )

    def restart_container(self, name: str) -> None:
        self.containers.restart(name).check()

    def copy_config_file(
        self, source: str, name: str, path: str, mode: str = "644", uid: int = 0, gid: int = 0
    ) -> None:
        self.containers.file_push(source, name, path, uid=uid, gid=gid, mode=mode).check()

    def wait_for_container_ready(self, name: str, max_attempts: int | None = None) -> bool:
        """poll for the boot marker once per interval, False on timeout"""
        attempts = max_attempts if max_attempts is not None else self.config.readiness_attempts
        marker = self.config.readiness_marker
        manager = None
        counter = None
        if self.progress:
            manager = enlighten.get_manager()
            counter = manager.counter(
                total=attempts, desc=f"boot {name}", unit="polls", leave=False, color="cyan"
            )
        ready = False
        try:
            for attempt in range(attempts):
                if self.containers.exec(name, ["test", "-f", marker]).ok:
                    ready = True
                    break
                if counter:
                    counter.update()
                if attempt + 1 < attempts:
                    self.sleep(self.config.poll_interval)
        finally:
            if counter:
                counter.close()
            if manager:
                manager.stop()
        if not ready:
            _LOGGER.warning("Container %s may not be fully ready", name)
        return ready

    def check_network(self, name: str, max_attempts: int | None = None) -> None:
        """ping the probe target until it answers, raises NetworkUnreachable"""
        attempts = max_attempts if max_attempts is not None else self.config.network_attempts
        _LOGGER.warning("Waiting for network...")
        for attempt in range(attempts):
            result = self.containers.exec(
                name, ["ping", "-c", "4", self.config.network_probe]
            )
            if result.ok:
                _LOGGER.warning("Network is up.")
                return
            if attempt + 1 < attempts:
                self.sleep(self.config.poll_interval)
        raise NetworkUnreachable(f"Network check failed after {attempts} attempts.")

    def create_standard_container(self, spec: ContainerSpec) -> bool:
        """recreate a container from its profile, returns readiness"""
        if self.delete_container(spec.name):
            _LOGGER.info("Deleted existing container %s", spec.name)
        self.create_container_profile(spec.name, spec.profile_yaml)
        self.launch_container(spec.image, spec.name)
        if spec.alias:
            self.setup_container_alias(spec.name)
        if spec.netplan_file:
            self.setup_static_network(spec.name, spec.netplan_file)
        return self.wait_for_container_ready(spec.name)

    def create_client_container(self, spec: ClientSpec, script: str | None = None) -> None:
        """recreate a LAN client with its profile mutated device by device"""
        self.ensure_base_image(spec.image, script)
        self.delete_container(spec.name)

        ctl = self.containers
        # stale profiles and devices may or may not exist
        ctl.profile_delete(spec.name)
        ctl.profile_create(spec.name)
        ctl.profile_set(spec.name, "boot.autostart", "false").check()
        ctl.profile_set(spec.name, "limits.memory", spec.memory).check()
        ctl.profile_set(spec.name, "limits.cpu", spec.cpu).check()
        ctl.profile_device_remove(spec.name, "eth0")
        ctl.profile_device_remove(spec.name, "root")
        ctl.profile_device_add(
            spec.name,
            "eth0",
            "nic",
            nictype="bridged",
            parent=spec.bridge,
            vlan=str(spec.vlan),
        ).check()
        ctl.profile_device_add(
            spec.name, "root", "disk", path="/", pool=self.config.storage_pool
        ).check()
        self.launch_container(spec.image, spec.name, spec.name)
