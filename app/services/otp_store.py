"""
Ephemeral OTP records, one live record per identity.

Records are never trusted to expire on their own: the OTP service checks
``expires_at`` on every lookup. The sweep (memory) or key TTL (redis) only
bounds how long dead records occupy space.
"""

import json
import logging
import math
import threading
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Callable, Dict, Optional

import redis

from app.core.redis import CacheKeys
from app.core.timezone import get_ist_now
from app.services.sweeper import Sweeper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpRecord:
    identity: str
    code: str
    expires_at: datetime
    attempts: int
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_json(self) -> str:
        data = asdict(self)
        data["expires_at"] = self.expires_at.isoformat()
        data["created_at"] = self.created_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "OtpRecord":
        data = json.loads(raw)
        return cls(
            identity=data["identity"],
            code=data["code"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            attempts=int(data["attempts"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


class MemoryOtpStore:
    def __init__(
        self,
        sweep_interval_seconds: float = 300,
        clock: Callable[[], datetime] = get_ist_now,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[str, OtpRecord] = {}
        self._sweeper = Sweeper("otp", self.sweep, sweep_interval_seconds)

    def put(self, record: OtpRecord) -> None:
        with self._lock:
            self._records[record.identity] = record

    def get(self, identity: str) -> Optional[OtpRecord]:
        with self._lock:
            return self._records.get(identity)

    def increment_attempts(self, identity: str) -> Optional[OtpRecord]:
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return None
            record = replace(record, attempts=record.attempts + 1)
            self._records[identity] = record
            return record

    def delete(self, identity: str) -> bool:
        with self._lock:
            return self._records.pop(identity, None) is not None

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, rec in self._records.items() if rec.is_expired(now)]
            for identity in expired:
                del self._records[identity]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def start(self) -> None:
        self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()


class RedisOtpStore:
    """
    The record and its attempts counter live under separate keys with the
    same TTL. Attempts only ever change through INCR, so concurrent wrong
    guesses from several API processes are each counted.
    """

    def __init__(
        self,
        client: redis.Redis,
        grace_seconds: int = 300,
        clock: Callable[[], datetime] = get_ist_now,
    ):
        self.client = client
        # Keys outlive expires_at so a late verify still reports "expired", not "not found"
        self.grace_seconds = grace_seconds
        self._clock = clock

    def _parse(self, identity: str, raw: str) -> Optional[OtpRecord]:
        try:
            return OtpRecord.from_json(raw)
        except (ValueError, KeyError) as e:
            logger.warning("Discarding unreadable OTP record for %s: %s", identity, e)
            self.delete(identity)
            return None

    def put(self, record: OtpRecord) -> None:
        ttl = math.ceil((record.expires_at - self._clock()).total_seconds()) + self.grace_seconds
        ttl = max(ttl, 1)
        pipe = self.client.pipeline()
        pipe.setex(CacheKeys.otp(record.identity), ttl, record.to_json())
        pipe.setex(CacheKeys.otp_attempts(record.identity), ttl, record.attempts)
        pipe.execute()

    def get(self, identity: str) -> Optional[OtpRecord]:
        pipe = self.client.pipeline()
        pipe.get(CacheKeys.otp(identity))
        pipe.get(CacheKeys.otp_attempts(identity))
        raw, attempts = pipe.execute()
        if not raw:
            return None
        record = self._parse(identity, raw)
        if record is None or attempts is None:
            return record
        return replace(record, attempts=int(attempts))

    def increment_attempts(self, identity: str) -> Optional[OtpRecord]:
        record_key = CacheKeys.otp(identity)
        attempts_key = CacheKeys.otp_attempts(identity)

        pipe = self.client.pipeline()
        pipe.incr(attempts_key)
        pipe.get(record_key)
        pipe.pttl(record_key)
        attempts, raw, ttl_ms = pipe.execute()

        if not raw:
            self.client.delete(attempts_key)
            return None

        # A counter that lapsed before the record is recreated by INCR without a TTL
        if attempts == 1 and ttl_ms and ttl_ms > 0:
            self.client.pexpire(attempts_key, ttl_ms)

        record = self._parse(identity, raw)
        if record is None:
            return None
        return replace(record, attempts=int(attempts))

    def delete(self, identity: str) -> bool:
        pipe = self.client.pipeline()
        pipe.delete(CacheKeys.otp(identity))
        pipe.delete(CacheKeys.otp_attempts(identity))
        deleted, _ = pipe.execute()
        return deleted > 0

    def sweep(self) -> int:
        return 0

    def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass
