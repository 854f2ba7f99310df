"""Repositories for submissions and their comments."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Submission, SubmissionComment
from app.repositories.base_repository import BaseRepository


class SubmissionRepository(BaseRepository[Submission]):
    """Data access for research_submissions rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Submission)

    async def get_title(self, submission_id: UUID) -> Optional[str]:
        """Return the submission's title, or None if the row or title is missing."""
        try:
            result = await self.session.execute(
                select(Submission.title).where(Submission.id == submission_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail(f"reading title of {submission_id} for", e)

    async def set_status(self, submission_id: UUID, status: str) -> Optional[Submission]:
        return await self.update(submission_id, status=status)


class SubmissionCommentRepository(BaseRepository[SubmissionComment]):
    """Data access for submission_comments rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SubmissionComment)

    async def list_open(self, submission_id: UUID) -> List[SubmissionComment]:
        return await self.get_all(
            filters={"submission_id": submission_id, "is_resolved": False}
        )

    async def resolve_open(self, submission_id: UUID) -> int:
        """Mark every unresolved comment of a submission as resolved.

        Returns:
            Number of comments resolved
        """
        try:
            result = await self.session.execute(
                update(SubmissionComment)
                .where(
                    SubmissionComment.submission_id == submission_id,
                    SubmissionComment.is_resolved.is_(False),
                )
                .values(is_resolved=True)
            )
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self._fail(f"resolving comments of {submission_id} for", e)
