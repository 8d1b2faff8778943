import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from activations.domain.entities import Activation, ActivationKind
from activations.domain.errors import AmbiguousActivation, PersistenceError
from activations.domain.services import code_digest


class FrozenClock:
    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class InMemoryActivationStore:
    """
    Honours the store contract, including the compare-and-swap on save.
    Like the real stores it keeps only code digests.
    Reads yield to the event loop so concurrent callers interleave.
    """

    def __init__(self, kind: ActivationKind = ActivationKind.ACTIVATION, codes=None):
        self.kind = kind
        self.records: dict[str, Activation] = {}
        self._ids = itertools.count(1)
        self._codes = iter(codes) if codes is not None else None
        self.calls: list[str] = []

    def _next_code(self) -> str:
        if self._codes is not None:
            return next(self._codes)
        return f"code-{len(self.records) + 1}"

    async def create(self, owner: str, *, created_at: datetime) -> Activation:
        self.calls.append("create")
        code = self._next_code()
        activation = Activation(
            id=str(next(self._ids)),
            kind=self.kind,
            owner=owner,
            code_hash=code_digest(code),
            created_at=created_at,
            code=code,
        )
        self.records[activation.id] = replace(activation, code=None)
        return activation

    async def find_valid(self, owner, code=None, *, not_before):
        self.calls.append("find_valid")
        await asyncio.sleep(0)
        candidates = sorted(
            (
                a
                for a in self.records.values()
                if a.owner == owner
                and not a.completed
                and a.created_at > not_before
                and (code is None or a.code_hash == code_digest(code))
            ),
            key=lambda a: (a.created_at, int(a.id)),
            reverse=True,
        )
        if not candidates:
            return None
        if len(candidates) > 1 and candidates[0].created_at == candidates[1].created_at:
            raise AmbiguousActivation()
        return replace(candidates[0])

    async def find_completed(self, owner):
        self.calls.append("find_completed")
        await asyncio.sleep(0)
        done = [a for a in self.records.values() if a.owner == owner and a.completed]
        if not done:
            return None
        return replace(max(done, key=lambda a: (a.completed_at, int(a.id))))

    async def has_any(self, owner) -> bool:
        self.calls.append("has_any")
        return any(a.owner == owner for a in self.records.values())

    async def save(self, activation: Activation) -> bool:
        self.calls.append("save")
        stored = self.records.get(activation.id)
        if stored is None or stored.completed:
            return False
        stored.completed = True
        stored.completed_at = activation.completed_at
        return True

    async def delete(self, activation: Activation) -> bool:
        self.calls.append("delete")
        return self.records.pop(activation.id, None) is not None

    async def delete_expired(self, not_before: datetime) -> int:
        self.calls.append("delete_expired")
        expired = [
            id_
            for id_, a in self.records.items()
            if not a.completed and a.created_at <= not_before
        ]
        for id_ in expired:
            del self.records[id_]
        return len(expired)


class FailingActivationStore(InMemoryActivationStore):
    async def create(self, owner: str, *, created_at: datetime) -> Activation:
        raise PersistenceError("database down")

    async def delete_expired(self, not_before: datetime) -> int:
        raise PersistenceError("database down")


class SweepFailingActivationStore(InMemoryActivationStore):
    async def delete_expired(self, not_before: datetime) -> int:
        self.calls.append("delete_expired")
        raise PersistenceError("sweep down")
