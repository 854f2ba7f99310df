"""Replacement of an uploaded (not generated) supporting document."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import AppError, DocumentNotFoundError, ValidationError
from app.schemas.auth import CurrentUser
from app.schemas.common import DocumentResult, WorkflowResult
from app.schemas.files import NewFile
from app.services.saga import CompensationLog
from app.services.workflows.base import RevisionWorkflow
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

REPLACEABLE_DOCUMENT_TYPES = ("endorsement_letter", "research_instrument", "proposal_defense")

# Only these replacements count as a new revision of the document
COUNTED_DOCUMENT_TYPES = ("endorsement_letter",)


class QuickRevisionWorkflow(RevisionWorkflow):
    """Swaps the file behind an uploaded document and resets its verification."""

    name = "quick_revision"
    success_message = "Document replaced successfully!"
    pending_issues_message = "Document replaced! Please address the remaining verification issues."

    def validate(self, submission_id, payload, actor=None, document_type=None, **kwargs):
        super().validate(submission_id, payload, actor=actor)
        if document_type not in REPLACEABLE_DOCUMENT_TYPES:
            raise ValidationError(
                f"Document type '{document_type}' cannot be replaced directly. "
                f"Allowed: {', '.join(REPLACEABLE_DOCUMENT_TYPES)}"
            )
        if not isinstance(payload, NewFile) or not payload.content:
            raise ValidationError("A non-empty replacement file is required")

    async def run(
        self,
        submission_id: UUID,
        payload: NewFile,
        actor: CurrentUser = None,
        compensations: Optional[CompensationLog] = None,
        document_type: str = None,
    ) -> WorkflowResult:
        compensations = compensations if compensations is not None else CompensationLog()
        await self.require_submission(submission_id)
        log_extra = {"submission_id": str(submission_id), "document_type": document_type}

        document = await self.repos.documents.get_by_type(submission_id, document_type)
        if not document:
            raise DocumentNotFoundError(
                f"No {document_type} uploaded for submission {submission_id}"
            )
        previous_path = document.file_url

        new_path = f"{actor.id}/{submission_id}/{document_type}_{self.timestamp()}.{payload.extension}"
        await self.storage.upload_file(
            payload.content, new_path, content_type=payload.content_type, upsert=False
        )
        compensations.remove_uploaded(self.storage, new_path)

        fields = {
            "file_name": payload.file_name or f"{document_type}.{payload.extension}",
            "file_size": payload.size,
            "file_url": new_path,
            "uploaded_at": datetime.now(timezone.utc),
        }
        if document_type in COUNTED_DOCUMENT_TYPES:
            fields["revision_count"] = (document.revision_count or 0) + 1
        document = await self.repos.documents.update(document.id, **fields)
        compensations.clear()

        if previous_path and previous_path != new_path:
            try:
                await self.storage.remove_files([previous_path])
            except AppError as e:
                LOGGER.warning(f"Could not delete replaced file {previous_path}: {str(e)}", extra=log_extra)

        await self.verification.reset_document(document)
        status = await self.verification.recompute_status(
            submission_id, settings.revision.quick_revision_status_rule, resolve_comments=True
        )
        LOGGER.info(f"Replaced {document_type} with {new_path}", extra=log_extra)
        return self.result(
            status,
            [DocumentResult(
                document_type=document_type,
                success=True,
                document_id=document.id,
                pdf_path=new_path,
            )],
        )
