from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from activations.domain.errors import ActivationAlreadyCompleted


class ActivationKind(str, Enum):
    ACTIVATION = "activation"
    PASSWORD_RESET = "password_reset"


class RemovalResult(str, Enum):
    REMOVED = "removed"
    NEVER_ACTIVATED = "never_activated"
    NOTHING_TO_REMOVE = "nothing_to_remove"


@dataclass
class Activation:
    kind: ActivationKind
    owner: str
    code_hash: str
    created_at: datetime
    id: str | None = None
    completed: bool = False
    completed_at: datetime | None = None
    # plaintext, only set on a freshly created record; never persisted
    code: str | None = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if not self.owner:
            raise ValueError("owner is required")
        if not self.code_hash:
            raise ValueError("code_hash is required")
        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware")

    def expires_at(self, expiry_seconds: int) -> datetime:
        return self.created_at + timedelta(seconds=expiry_seconds)

    def is_valid(self, now: datetime, expiry_seconds: int) -> bool:
        return not self.completed and now < self.expires_at(expiry_seconds)

    def complete(self, at: datetime) -> None:
        if self.completed:
            raise ActivationAlreadyCompleted()
        self.completed = True
        self.completed_at = at
