"""Repositories for the one-per-submission form records."""

from typing import Optional, Type
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import ApplicationForm, ConsentForm, ResearchProtocol
from app.repositories.base_repository import BaseRepository, ModelType


class SubmissionFormRepository(BaseRepository[ModelType]):
    """Shared access for tables keyed 1:1 by submission_id."""

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        super().__init__(session, model)

    async def get_by_submission(self, submission_id: UUID) -> Optional[ModelType]:
        try:
            result = await self.session.execute(
                select(self.model).where(self.model.submission_id == submission_id)
            )
            return result.scalars().first()
        except SQLAlchemyError as e:
            await self._fail(f"retrieving {submission_id} of", e)

    async def upsert_for_submission(self, submission_id: UUID, **fields) -> ModelType:
        """Update the submission's row if it exists, otherwise insert it."""
        existing = await self.get_by_submission(submission_id)
        if existing:
            self.logger.info(
                f"Updating {self.model.__name__} for submission {submission_id}",
                extra={"submission_id": str(submission_id)}
            )
            return await self.update(existing.id, **fields)

        self.logger.info(
            f"Creating {self.model.__name__} for submission {submission_id}",
            extra={"submission_id": str(submission_id)}
        )
        return await self.create(submission_id=submission_id, **fields)

    async def update_for_submission(self, submission_id: UUID, **fields) -> Optional[ModelType]:
        """Update the submission's row. Returns None when there is no row."""
        existing = await self.get_by_submission(submission_id)
        if not existing:
            return None
        return await self.update(existing.id, **fields)


class ApplicationFormRepository(SubmissionFormRepository[ApplicationForm]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ApplicationForm)


class ResearchProtocolRepository(SubmissionFormRepository[ResearchProtocol]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ResearchProtocol)


class ConsentFormRepository(SubmissionFormRepository[ConsentForm]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ConsentForm)
