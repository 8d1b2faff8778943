from activations.application.activation_service import ActivationService
from activations.domain.entities import ActivationKind
from activations.infrastructure.backend import build_activation_service
from activations.settings import get_settings


def get_activation_service(kind: ActivationKind) -> ActivationService:
    # `kind` is resolved from the route's path parameter
    return build_activation_service(kind, get_settings())
