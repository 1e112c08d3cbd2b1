from __future__ import annotations
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..infra.sql import make_async_engine
from .db import Base, EmailClick, EmailOpen


class StorageError(Exception):
    """A read or write against the event tables failed."""


class EventStore:
    """
    Append-only log of email opens and clicks.

    Every operation opens its own session, so an insert is a single
    independent transaction and nothing spans both tables.
    """

    def __init__(
        self, *, engine: AsyncEngine,
        SessionAsync: async_sessionmaker[AsyncSession],
    ) -> None:
        self.engine = engine
        self.SessionAsync = SessionAsync

    @classmethod
    def from_url(cls, database_url: str) -> "EventStore":
        engine, SessionAsync = make_async_engine(database_url)
        return cls(engine=engine, SessionAsync=SessionAsync)

    async def init_schema(self) -> None:
        # create-if-absent; errors propagate so startup aborts
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    # ---
    # writes
    # ---
    async def _insert(self, row: EmailOpen | EmailClick) -> None:
        try:
            async with self.SessionAsync() as db:
                async with db.begin():
                    db.add(row)
        # the driver encodes text itself; lone surrogates fail there
        except (SQLAlchemyError, UnicodeEncodeError) as e:
            raise StorageError(
                f"insert into {row.__tablename__} failed: {e}"
            ) from e

    async def insert_open(
        self, *, email: Optional[str], domain: Optional[str],
        subject: Optional[str], ip: Optional[str],
        user_agent: Optional[str], timestamp: str,
    ) -> None:
        await self._insert(EmailOpen(
            email=email,
            domain=domain,
            subject=subject,
            ip=ip,
            user_agent=user_agent,
            timestamp=timestamp,
        ))

    async def insert_click(
        self, *, email: Optional[str], domain: Optional[str],
        subject: Optional[str], url: Optional[str], ip: Optional[str],
        user_agent: Optional[str], timestamp: str,
    ) -> None:
        await self._insert(EmailClick(
            email=email,
            domain=domain,
            subject=subject,
            url=url,
            ip=ip,
            user_agent=user_agent,
            timestamp=timestamp,
        ))

    # ---
    # reads
    # ---
    async def _list_recent(self, model, limit: int) -> list:
        stmt = (
            select(model)
            # id breaks ties so identical timestamps keep a stable order
            .order_by(model.timestamp.desc(), model.id.desc())
            .limit(max(0, limit))
        )
        try:
            async with self.SessionAsync() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(
                f"query on {model.__tablename__} failed: {e}"
            ) from e

    async def list_recent_opens(self, limit: int = 50) -> List[EmailOpen]:
        return await self._list_recent(EmailOpen, limit)

    async def list_recent_clicks(self, limit: int = 50) -> List[EmailClick]:
        return await self._list_recent(EmailClick, limit)
