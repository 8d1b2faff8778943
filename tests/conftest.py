import pytest

from activations.application.activation_service import ActivationService
from tests.fakes import FrozenClock, InMemoryActivationStore


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def store():
    return InMemoryActivationStore(codes=["abc123", "def456", "ghi789", "jkl012"])


@pytest.fixture()
def service(store, clock):
    return ActivationService(store, expiry_seconds=60, clock=clock)
