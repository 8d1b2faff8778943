from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from activations.domain.entities import Activation, ActivationKind
from activations.domain.errors import AmbiguousActivation, PersistenceError
from activations.domain.ports.activation_store import ActivationStorePort
from activations.domain.services import code_digest, generate_code

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MAX_CODE_ATTEMPTS = 3

_LUA_CREATE = """
-- KEYS[1]: code index key, KEYS[2]: id sequence
-- KEYS[3]: owner index, KEYS[4]: pending index
-- ARGV[1]: record key prefix, ARGV[2]: owner, ARGV[3]: code digest
-- ARGV[4]: created_at (iso), ARGV[5]: created_at (epoch us)
if redis.call('EXISTS', KEYS[1]) == 1 then
  return false
end
local id = redis.call('INCR', KEYS[2])
redis.call('SET', KEYS[1], id)
redis.call('HSET', ARGV[1] .. id,
  'owner', ARGV[2], 'code_hash', ARGV[3], 'completed', '0',
  'created_at', ARGV[4], 'completed_at', '')
redis.call('ZADD', KEYS[3], ARGV[5], id)
redis.call('ZADD', KEYS[4], ARGV[5], id)
return id
"""

_LUA_COMPLETE = """
-- KEYS[1]: record, KEYS[2]: pending index, KEYS[3]: owner completed index
-- ARGV[1]: id, ARGV[2]: completed_at (iso), ARGV[3]: completed_at (epoch us)
if redis.call('HGET', KEYS[1], 'completed') ~= '0' then
  return 0
end
redis.call('HSET', KEYS[1], 'completed', '1', 'completed_at', ARGV[2])
redis.call('ZREM', KEYS[2], ARGV[1])
redis.call('ZADD', KEYS[3], ARGV[3], ARGV[1])
return 1
"""

_LUA_DELETE = """
-- KEYS[1]: record, KEYS[2]: owner index
-- KEYS[3]: owner completed index, KEYS[4]: pending index
-- ARGV[1]: id, ARGV[2]: code index key prefix
local code_hash = redis.call('HGET', KEYS[1], 'code_hash')
if not code_hash then
  return 0
end
redis.call('DEL', KEYS[1], ARGV[2] .. code_hash)
redis.call('ZREM', KEYS[2], ARGV[1])
redis.call('ZREM', KEYS[3], ARGV[1])
redis.call('ZREM', KEYS[4], ARGV[1])
return 1
"""

_LUA_DELETE_EXPIRED = """
-- KEYS[1]: pending index (incomplete records only)
-- ARGV[1]: cutoff (epoch us, inclusive), ARGV[2]: record key prefix
-- ARGV[3]: code index key prefix, ARGV[4]: owner index key prefix
local ids = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', ARGV[1])
for _, id in ipairs(ids) do
  local rec = ARGV[2] .. id
  local fields = redis.call('HMGET', rec, 'owner', 'code_hash')
  if fields[1] then
    redis.call('ZREM', ARGV[4] .. fields[1], id)
  end
  if fields[2] then
    redis.call('DEL', ARGV[3] .. fields[2])
  end
  redis.call('DEL', rec)
  redis.call('ZREM', KEYS[1], id)
end
return #ids
"""


def _to_us(value: datetime) -> int:
    return (value - _EPOCH) // timedelta(microseconds=1)


class RedisActivationStore(ActivationStorePort):
    """
    Redis implementation of ActivationStorePort.

    Layout under `{prefix}{kind}:`
    - rec:{id}      hash with the record fields
    - owner:{owner} zset of the owner's record ids scored by creation time
    - done:{owner}  zset of the owner's completed ids scored by completion time
    - pending       zset of incomplete record ids scored by creation time
    - code:{digest} record id, keeps codes unique within the kind

    Plaintext codes are never written; hashes and keys use `code_digest`.
    Every write is a Lua script so it applies atomically on the server.
    Scripts derive some key names from prefixes, so this targets a single
    (non-cluster) Redis.
    """

    def __init__(
        self, redis: Redis, kind: ActivationKind, *, key_prefix: str = "act:"
    ) -> None:
        self._redis = redis
        self.kind = kind
        self._ns = f"{key_prefix}{kind.value}:"
        self._create = redis.register_script(_LUA_CREATE)
        self._complete = redis.register_script(_LUA_COMPLETE)
        self._delete = redis.register_script(_LUA_DELETE)
        self._delete_expired = redis.register_script(_LUA_DELETE_EXPIRED)

    def _record_key(self, id_: str) -> str:
        return f"{self._ns}rec:{id_}"

    def _owner_key(self, owner: str) -> str:
        return f"{self._ns}owner:{owner}"

    def _done_key(self, owner: str) -> str:
        return f"{self._ns}done:{owner}"

    def _code_key(self, code_hash: str) -> str:
        return f"{self._ns}code:{code_hash}"

    @property
    def _pending_key(self) -> str:
        return f"{self._ns}pending"

    @asynccontextmanager
    async def _errors(self) -> AsyncIterator[None]:
        try:
            yield
        except RedisError as e:
            raise PersistenceError(f"activation store failed: {e}") from e

    def _to_entity(self, id_: str, fields: dict[str, str]) -> Activation:
        completed_at = fields.get("completed_at")
        return Activation(
            id=str(id_),
            kind=self.kind,
            owner=fields["owner"],
            code_hash=fields["code_hash"],
            completed=fields.get("completed") == "1",
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            created_at=datetime.fromisoformat(fields["created_at"]),
        )

    async def _load(self, id_: str) -> Optional[Activation]:
        fields = await self._redis.hgetall(self._record_key(id_))
        return self._to_entity(id_, fields) if fields else None

    async def create(self, owner: str, *, created_at: datetime) -> Activation:
        async with self._errors():
            for _ in range(_MAX_CODE_ATTEMPTS):
                code = generate_code()
                code_hash = code_digest(code)
                id_ = await self._create(
                    keys=[
                        self._code_key(code_hash),
                        f"{self._ns}seq",
                        self._owner_key(owner),
                        self._pending_key,
                    ],
                    args=[
                        self._record_key(""),
                        owner,
                        code_hash,
                        created_at.isoformat(),
                        _to_us(created_at),
                    ],
                )
                if id_ is not None:
                    return Activation(
                        id=str(id_),
                        kind=self.kind,
                        owner=owner,
                        code_hash=code_hash,
                        created_at=created_at,
                        code=code,
                    )

        raise PersistenceError("could not generate a unique activation code")

    async def find_valid(
        self, owner: str, code: Optional[str] = None, *, not_before: datetime
    ) -> Optional[Activation]:
        async with self._errors():
            if code is not None:
                # codes are unique per kind, so at most one candidate
                id_ = await self._redis.get(self._code_key(code_digest(code)))
                if id_ is None:
                    return None
                activation = await self._load(id_)
                if (
                    activation is None
                    or activation.owner != owner
                    or activation.completed
                    or activation.created_at <= not_before
                ):
                    return None
                return activation

            ids = await self._redis.zrevrangebyscore(
                self._owner_key(owner), "+inf", f"({_to_us(not_before)}"
            )
            candidates: list[Activation] = []
            for id_ in ids:
                activation = await self._load(id_)
                if activation is None or activation.completed:
                    continue
                candidates.append(activation)
                if len(candidates) == 2:
                    break

        if not candidates:
            return None
        if len(candidates) > 1 and candidates[0].created_at == candidates[1].created_at:
            raise AmbiguousActivation(
                f"several {self.kind.value} records for {owner!r} share created_at"
            )
        return candidates[0]

    async def find_completed(self, owner: str) -> Optional[Activation]:
        async with self._errors():
            ids = await self._redis.zrevrange(self._done_key(owner), 0, 0)
            if not ids:
                return None
            return await self._load(ids[0])

    async def has_any(self, owner: str) -> bool:
        async with self._errors():
            return await self._redis.zcard(self._owner_key(owner)) > 0

    async def save(self, activation: Activation) -> bool:
        if not activation.completed or activation.completed_at is None:
            raise ValueError("only completed activations can be saved")
        async with self._errors():
            res = await self._complete(
                keys=[
                    self._record_key(activation.id),
                    self._pending_key,
                    self._done_key(activation.owner),
                ],
                args=[
                    activation.id,
                    activation.completed_at.isoformat(),
                    _to_us(activation.completed_at),
                ],
            )
        return int(res) == 1

    async def delete(self, activation: Activation) -> bool:
        async with self._errors():
            res = await self._delete(
                keys=[
                    self._record_key(activation.id),
                    self._owner_key(activation.owner),
                    self._done_key(activation.owner),
                    self._pending_key,
                ],
                args=[activation.id, self._code_key("")],
            )
        return int(res) == 1

    async def delete_expired(self, not_before: datetime) -> int:
        async with self._errors():
            res = await self._delete_expired(
                keys=[self._pending_key],
                args=[
                    _to_us(not_before),
                    self._record_key(""),
                    self._code_key(""),
                    self._owner_key(""),
                ],
            )
        return int(res)
