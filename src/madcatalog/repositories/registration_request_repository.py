"""
Registration request repository implementation.

Provides data access for registration requests of every external source.
Requests are always looked up together with their source so one source's
workflow never touches another source's requests.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import RegistrationRequest as RegistrationRequestDB
from madcatalog.models.enums import SourceKind
from madcatalog.repositories.base import BaseSQLAlchemyRepository


class RegistrationRequestRepository(
    BaseSQLAlchemyRepository[RegistrationRequestDB, uuid.UUID]
):
    """Repository for registration requests."""

    def __init__(self) -> None:
        """Initialize repository with RegistrationRequest model."""
        super().__init__(RegistrationRequestDB)

    async def get_for_source(
        self,
        session: AsyncSession,
        source: SourceKind,
        request_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Optional[RegistrationRequestDB]:
        """
        Get a request of one source by id.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        source : SourceKind
            Source the request must belong to.
        request_id : uuid.UUID
            Request id.
        for_update : bool, optional
            Lock the row for the rest of the transaction (default False).

        Returns
        -------
        Optional[RegistrationRequestDB]
            The request, or None if absent or of another source.
        """
        stmt = select(RegistrationRequestDB).where(
            RegistrationRequestDB.id == request_id,
            RegistrationRequestDB.source == source.value,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_pending(
        self, session: AsyncSession, source: SourceKind, source_id: str
    ) -> Optional[RegistrationRequestDB]:
        """Get the unchecked request for an external id, if any."""
        result = await session.execute(
            select(RegistrationRequestDB).where(
                RegistrationRequestDB.source == source.value,
                RegistrationRequestDB.source_id == source_id,
                RegistrationRequestDB.is_checked.is_(False),
            )
        )
        return result.scalar_one_or_none()

    def find_stmt(
        self, source: SourceKind, *, checked: Optional[bool] = None
    ) -> Select[Any]:
        """Build the selection of requests of one source."""
        stmt = select(RegistrationRequestDB).where(
            RegistrationRequestDB.source == source.value
        )
        if checked is not None:
            stmt = stmt.where(RegistrationRequestDB.is_checked.is_(checked))
        return stmt
