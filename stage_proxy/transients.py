"""Expiring key/value cache backed by the transients table."""
from datetime import datetime, timedelta, timezone
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Callable, Optional

from stage_proxy.logger import get_logger
from stage_proxy.models import Transient

log = get_logger("transients")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TransientStore:
    """
    Shared cross-request cache.

    Absence is an expected state: values may expire or lose a write race. Under a
    race the loser's value is discarded and the caller keeps using what it computed.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def get(self, name: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        result = await self.db.execute(select(Transient).where(Transient.name == name))
        row = result.scalar_one_or_none()
        if row is None:
            return None

        if row.expires_at is not None and row.expires_at <= self.clock():
            await self.delete(name)
            return None

        return row.value

    async def set(self, name: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value for `ttl` seconds (forever when ttl is None or 0)."""
        expires_at = self.clock() + timedelta(seconds=ttl) if ttl else None
        await self.db.merge(Transient(name=name, value=value, expires_at=expires_at))
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request stored the same transient first
            await self.db.rollback()
            log.info(f"Lost write race for transient {name}")

    async def delete(self, name: str) -> None:
        await self.db.execute(delete(Transient).where(Transient.name == name))
        await self.db.commit()
