"""
Tenant-scoped data access

Every tenant-owned table carries `organization_id`. Queries against those
tables are built here so the organization filter cannot be left out.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from fieldlink.core.errors import NotFoundError

ModelT = TypeVar("ModelT")


def parse_uuid(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    """UUID from a path/query value; None when it is not a valid UUID."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class TenantRepository:
    """Query helper bound to one organization."""

    def __init__(self, db: AsyncSession, organization_id: Union[str, uuid.UUID]):
        org_id = parse_uuid(organization_id)
        if org_id is None:
            raise ValueError("TenantRepository requires an organization id")
        self.db = db
        self.organization_id = org_id

    def select(self, model: Type[ModelT], *criteria: Any) -> Select:
        return select(model).where(model.organization_id == self.organization_id, *criteria)

    async def get(self, model: Type[ModelT], id: Union[str, uuid.UUID], *options: Any) -> Optional[ModelT]:
        entity_id = parse_uuid(id)
        if entity_id is None:
            return None
        query = self.select(model, model.id == entity_id)
        if options:
            query = query.options(*options)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_404(
        self, model: Type[ModelT], id: Union[str, uuid.UUID], *options: Any, detail: Optional[str] = None
    ) -> ModelT:
        entity = await self.get(model, id, *options)
        if entity is None:
            raise NotFoundError(detail or f"{_label(model)} not found")
        return entity

    async def first(self, model: Type[ModelT], *criteria: Any) -> Optional[ModelT]:
        result = await self.db.execute(self.select(model, *criteria).limit(1))
        return result.scalar_one_or_none()

    async def all(self, query: Select) -> List[Any]:
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, model: Type[ModelT], *criteria: Any) -> int:
        query = select(func.count()).select_from(model).where(
            model.organization_id == self.organization_id, *criteria
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def total(self, query: Select) -> int:
        result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        return result.scalar() or 0

    async def scalar(self, model: Type[ModelT], expression: Any, *criteria: Any) -> Any:
        query = select(expression).select_from(model).where(
            model.organization_id == self.organization_id, *criteria
        )
        result = await self.db.execute(query)
        return result.scalar()

    def recordings_since(
        self,
        since: Optional[datetime],
        user_id: Optional[Union[str, uuid.UUID]] = None,
        options: Sequence[Any] = (),
    ) -> Select:
        """Recordings created at or after `since`, optionally for one user."""
        from fieldlink.models.recording import Recording

        criteria = []
        if since is not None:
            criteria.append(Recording.created_at >= since)
        if user_id:
            criteria.append(Recording.user_id == parse_uuid(user_id))
        query = self.select(Recording, *criteria)
        if options:
            query = query.options(*options)
        return query

    def transcriptions(self, *criteria: Any) -> Select:
        """Transcriptions reached through the tenant's recordings."""
        from fieldlink.models.recording import Recording
        from fieldlink.models.transcription import Transcription

        return (
            select(Transcription)
            .join(Recording, Transcription.recording_id == Recording.id)
            .where(Recording.organization_id == self.organization_id, *criteria)
        )


def _label(model) -> str:
    return {
        "ProcessTemplate": "Process template",
        "AnalysisResult": "Analysis",
    }.get(model.__name__, model.__name__)


def sort_clause(model, sort_by: str, order: str, columns: Dict[str, str], default: str = "created_at"):
    """ORDER BY for a whitelisted camelCase sort key."""
    column = getattr(model, columns.get(sort_by, default))
    return column.asc() if order == "asc" else column.desc()
