class DomainError(Exception):
    """Base class for all domain-level errors."""

    pass


class ActivationAlreadyCompleted(DomainError):
    """Tried to complete an activation that was already completed."""

    pass


class AmbiguousActivation(DomainError):
    """More than one activation matches and none can be preferred over the others."""

    pass


class PersistenceError(DomainError):
    """The activation store failed (connectivity, driver or constraint error)."""

    pass
