"""Object storage for call recordings and call logs."""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import StoredObject

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Abstract base class for named-object storage."""

    @abstractmethod
    async def write(
        self,
        container: str,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Write (or overwrite) an object and return its location."""
        pass

    @abstractmethod
    async def read(self, container: str, name: str) -> Optional[StoredObject]:
        """Read an object, or None if it does not exist."""
        pass


def object_location(container: str, name: str) -> str:
    """Location string returned for objects kept in the database."""
    return f"db://{container}/{name}"


class DatabaseObjectStorage(ObjectStorage):
    """Stores objects as rows in the ``stored_objects`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def write(
        self,
        container: str,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        async with self.session_factory() as db:
            result = await db.execute(
                select(StoredObject).where(
                    StoredObject.container == container,
                    StoredObject.name == name,
                )
            )
            obj = result.scalar_one_or_none()
            if obj is None:
                obj = StoredObject(container=container, name=name)
                db.add(obj)
            obj.data = data
            obj.size = len(data)
            obj.content_type = content_type
            obj.updated_at = datetime.utcnow()
            await db.commit()

        location = object_location(container, name)
        logger.info(f"[STORAGE] Wrote {len(data)} bytes to {location}")
        return location

    async def read(self, container: str, name: str) -> Optional[StoredObject]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(StoredObject).where(
                    StoredObject.container == container,
                    StoredObject.name == name,
                )
            )
            return result.scalar_one_or_none()
