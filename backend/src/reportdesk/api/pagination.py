"""Pagination utilities for API endpoints.

Provides standardized pagination across all list endpoints.
"""

from typing import Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class PaginationParams:
    """Common pagination parameters for dependency injection."""

    def __init__(
        self,
        limit: int = Query(20, ge=1, le=100, description="Maximum results to return"),
        offset: int = Query(0, ge=0, description="Number of results to skip"),
    ):
        self.limit = limit
        self.offset = offset


class PaginatedResult(BaseModel, Generic[T]):
    """Generic paginated result model."""

    results: list[T]
    total: int = Field(..., description="Total number of results available")
    limit: int = Field(..., description="Maximum results requested")
    offset: int = Field(..., description="Number of results skipped")
    has_more: bool = Field(..., description="Whether more results are available")

    @classmethod
    def create(
        cls,
        results: list[T],
        total: int,
        limit: int,
        offset: int,
    ) -> "PaginatedResult[T]":
        return cls(
            results=results,
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(results) < total,
        )


async def paginate_query(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *options,
) -> tuple[list, int]:
    """Run ``query`` for one page and count the full result set.

    Args:
        session: Database session
        query: Ordered SELECT without LIMIT/OFFSET
        params: Pagination parameters
        options: Loader options applied to the page query only

    Returns:
        Tuple of (rows for the page, total count)
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await session.execute(count_query)).scalar_one()

    result = await session.execute(
        query.options(*options).limit(params.limit).offset(params.offset)
    )
    return list(result.scalars().all()), total
