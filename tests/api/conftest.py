import pytest
from fastapi.testclient import TestClient

from activations.application.activation_service import ActivationService
from activations.domain.entities import ActivationKind
from activations.main import create_app
from activations.presentation.dependencies import get_activation_service
from tests.fakes import FrozenClock, InMemoryActivationStore


@pytest.fixture()
def app_and_services():
    app = create_app()
    clock = FrozenClock()
    services = {
        kind: ActivationService(
            InMemoryActivationStore(kind), expiry_seconds=60, clock=clock
        )
        for kind in ActivationKind
    }

    def _get_activation_service(kind: ActivationKind):
        return services[kind]

    app.dependency_overrides[get_activation_service] = _get_activation_service

    try:
        yield app, services, clock
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app_and_services):
    app, _, _ = app_and_services
    return TestClient(app, raise_server_exceptions=False)
