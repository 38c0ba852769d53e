"""Test configuration for pytest."""

import os
from types import SimpleNamespace

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Remove CLUSTER_* variables and keep stray .env files out of reach."""
    for key in list(os.environ):
        if key.startswith("CLUSTER_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return None


class _BaseFakeCluster:
    """In-memory cluster recording forks and exit listeners."""

    def __init__(self):
        self.setup_calls = []
        self.forks = []
        self.exit_listeners = []
        self._next_id = 1
        self.fail_next_fork = False

    async def fork(self, env=None):
        if self.fail_next_fork:
            self.fail_next_fork = False
            raise RuntimeError("fork failed")
        worker = SimpleNamespace(id=self._next_id, env=env)
        self._next_id += 1
        self.forks.append(worker)
        return worker

    def add_exit_listener(self, callback):
        self.exit_listeners.append(callback)

    def remove_exit_listener(self, callback):
        self.exit_listeners.remove(callback)

    def exit(self, worker):
        for callback in list(self.exit_listeners):
            callback(worker)


class FakeCluster(_BaseFakeCluster):
    """Cluster with the current setup_primary name."""

    def setup_primary(self, **settings):
        self.setup_calls.append(settings)


class LegacyFakeCluster(_BaseFakeCluster):
    """Cluster exposing only the old setup_master name."""

    def setup_master(self, **settings):
        self.setup_calls.append(settings)


@pytest.fixture
def fake_cluster():
    """Fresh in-memory cluster."""
    return FakeCluster()


@pytest.fixture
def legacy_cluster():
    """In-memory cluster with only setup_master."""
    return LegacyFakeCluster()
