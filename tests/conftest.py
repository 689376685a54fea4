"""Shared fixtures: an in-memory repository with main and develop."""

import pytest

from flowgate.api import Flow
from flowgate.infra.memory_backend import InMemoryBackend


@pytest.fixture
def backend():
    backend = InMemoryBackend()
    backend.init_repository()
    return backend


@pytest.fixture
def flow(backend):
    return Flow(backend=backend, config={})


@pytest.fixture
def released(flow, backend):
    """Repository where release 1.0.0 has been finished."""
    flow.start_release("1.0.0", requested_by="alice")
    backend.commit("release/1.0.0", "Bump version", paths=["VERSION"])
    flow.finish_release("release/1.0.0", "1.0.0", requested_by="alice")
    return flow
