"""Repositories for uploaded documents and their verifications."""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import DocumentVerification, UploadedDocument
from app.repositories.base_repository import BaseRepository


class UploadedDocumentRepository(BaseRepository[UploadedDocument]):
    """Data access for uploaded_documents rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, UploadedDocument)

    async def get_by_type(self, submission_id: UUID, document_type: str) -> Optional[UploadedDocument]:
        """Most recently uploaded row of a document type for a submission."""
        try:
            result = await self.session.execute(
                select(UploadedDocument)
                .where(
                    UploadedDocument.submission_id == submission_id,
                    UploadedDocument.document_type == document_type,
                )
                .order_by(UploadedDocument.uploaded_at.desc())
            )
            return result.scalars().first()
        except SQLAlchemyError as e:
            await self._fail(f"retrieving {document_type} of", e)

    async def list_by_types(
        self, submission_id: UUID, document_types: Iterable[str]
    ) -> List[UploadedDocument]:
        try:
            result = await self.session.execute(
                select(UploadedDocument).where(
                    UploadedDocument.submission_id == submission_id,
                    UploadedDocument.document_type.in_(list(document_types)),
                )
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self._fail(f"listing documents of {submission_id} for", e)

    async def delete_by_type(self, submission_id: UUID, document_type: str) -> int:
        """Delete every row of a document type for a submission.

        Returns:
            Number of rows deleted
        """
        try:
            result = await self.session.execute(
                delete(UploadedDocument).where(
                    UploadedDocument.submission_id == submission_id,
                    UploadedDocument.document_type == document_type,
                )
            )
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self._fail(f"deleting {document_type} of", e)


class DocumentVerificationRepository(BaseRepository[DocumentVerification]):
    """Data access for document_verifications rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentVerification)

    async def get_by_document(self, document_id: UUID) -> Optional[DocumentVerification]:
        try:
            result = await self.session.execute(
                select(DocumentVerification).where(DocumentVerification.document_id == document_id)
            )
            return result.scalars().first()
        except SQLAlchemyError as e:
            await self._fail(f"retrieving verification of document {document_id} for", e)

    async def list_for_submission(self, submission_id: UUID) -> List[DocumentVerification]:
        try:
            result = await self.session.execute(
                select(DocumentVerification).where(DocumentVerification.submission_id == submission_id)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self._fail(f"listing verifications of {submission_id} for", e)
