from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from activations.domain.entities import Activation, ActivationKind


class ActivationStorePort(Protocol):
    """
    Persistence boundary for one activation kind.

    Every operation is scoped to `kind`; two stores of different kinds never
    see each other's records. Backend failures surface as PersistenceError.
    """

    kind: ActivationKind

    async def create(self, owner: str, *, created_at: datetime) -> Activation:
        """
        Generate a fresh code and persist a new incomplete record keyed by its
        digest. Regenerate the code on a collision. The returned entity is the
        only one that carries the plaintext `code`.
        """

    async def find_valid(
        self, owner: str, code: Optional[str] = None, *, not_before: datetime
    ) -> Optional[Activation]:
        """
        Newest incomplete record with created_at > not_before, optionally
        matching `code` (compared by digest). Raise AmbiguousActivation if the
        two newest candidates were created at the same instant.
        """

    async def find_completed(self, owner: str) -> Optional[Activation]:
        """Most recently completed record for the owner, or None."""

    async def has_any(self, owner: str) -> bool:
        """True if the owner has at least one record, completed or not."""

    async def save(self, activation: Activation) -> bool:
        """
        Persist the completion of `activation` as a compare-and-swap: only
        succeeds if the stored record is still incomplete. Return False if it
        was completed or deleted concurrently.
        """

    async def delete(self, activation: Activation) -> bool:
        """Remove one record. Return False if it was already gone."""

    async def delete_expired(self, not_before: datetime) -> int:
        """Delete incomplete records with created_at <= not_before; return count."""
