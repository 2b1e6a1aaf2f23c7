"""Revenue, profit and inventory snapshots for the dashboard charts."""

from datetime import datetime
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db
from .exceptions import NotFound
from .logging import get_logger
from .models import StatCreateRequest
from .tables import StatSnapshot

logger = get_logger(__name__)


class StatsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, data: StatCreateRequest, submitted_by: UUID | None = None) -> StatSnapshot:
        snapshot = StatSnapshot(
            id=uuid4(),
            total_revenue=data.total_revenue,
            total_profit=data.total_profit,
            total_inventory=data.total_inventory,
            submitted_by=submitted_by,
            created_at=datetime.utcnow(),
        )
        self.session.add(snapshot)
        await self.session.commit()
        logger.info("Stat snapshot recorded", extra={"snapshot_id": str(snapshot.id)})
        return snapshot

    async def history(self, limit: int = 100) -> list[StatSnapshot]:
        """The newest ``limit`` snapshots, oldest first, as a chart series."""
        result = await self.session.execute(
            select(StatSnapshot).order_by(StatSnapshot.created_at.desc()).limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def latest(self) -> StatSnapshot:
        snapshot = await self.session.scalar(
            select(StatSnapshot).order_by(StatSnapshot.created_at.desc()).limit(1)
        )
        if snapshot is None:
            raise NotFound("Stat snapshot")
        return snapshot


async def get_stats_service(db: AsyncSession = Depends(get_db)) -> StatsService:
    return StatsService(db)
