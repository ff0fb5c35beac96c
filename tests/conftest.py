from __future__ import annotations

import pytest

from gwtopo.bridges import BridgeReconciler
from gwtopo.config import Config
from gwtopo.containers import ContainerReconciler
from gwtopo.inmemory import InMemoryHost


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(root=str(tmp_path))


@pytest.fixture
def host() -> InMemoryHost:
    mem = InMemoryHost()
    mem.images.update({"client-base", "genieacs-base", "ubuntu-base"})
    return mem


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def bridge_reconciler(host, cfg) -> BridgeReconciler:
    return BridgeReconciler(host, host, cfg)


@pytest.fixture
def container_reconciler(host, cfg, sleeps) -> ContainerReconciler:
    return ContainerReconciler(host, cfg, sleep=sleeps)
