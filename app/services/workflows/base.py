"""Shared flow of the revision save workflows.

Each workflow persists its step, regenerates the affected documents, resets
the verification of the documents it owns and re-derives the submission
status. Any ``AppError`` becomes a ``WorkflowResult`` failure; writes made
before the failure stay committed, only uncommitted uploads are removed.
"""

import time
from typing import Callable, List, Optional
from uuid import UUID

from app.core.exceptions import AppError, AuthError, DocumentNotFoundError
from app.database.models import Submission
from app.repositories.bundle import RepositoryBundle
from app.schemas.auth import CurrentUser
from app.schemas.common import DocumentResult, WorkflowResult
from app.services.base_service import BaseService
from app.services.document_bags import DocumentBagBuilder
from app.services.pdf.renderers import GENERATED_DOCUMENT_TYPES
from app.services.regeneration_service import RegenerationService
from app.services.saga import CompensationLog
from app.services.storage_service import StorageService
from app.services.verification_service import PENDING, VerificationService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RevisionWorkflow(BaseService):
    """Template for a step's save: ``save()`` wraps ``execute()`` with the failure contract."""

    name = "revision"
    success_message = "Changes saved and resubmitted successfully!"
    pending_issues_message = "Changes saved! Please address the verification issues before resubmitting."

    def __init__(
        self,
        repos: RepositoryBundle,
        storage: Optional[StorageService] = None,
        regeneration: Optional[RegenerationService] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(repos)
        self.storage = storage or StorageService()
        self.regeneration = regeneration or RegenerationService(storage=self.storage)
        self.verification = VerificationService(repos)
        self.bags = DocumentBagBuilder(repos, self.storage)
        self.clock = clock

    def validate(self, submission_id, payload, actor=None, **kwargs):
        if actor is None or not getattr(actor, "id", None):
            raise AuthError("User not authenticated")

    async def save(
        self, submission_id: UUID, payload, actor: Optional[CurrentUser], **options
    ) -> WorkflowResult:
        """Run the workflow and report the outcome in the shape the wizard expects."""
        compensations = CompensationLog()
        try:
            return await self.execute(
                submission_id, payload, actor=actor, compensations=compensations, **options
            )
        except AppError as e:
            LOGGER.error(
                f"{self.name} save failed for submission {submission_id}: {str(e)}",
                extra={"submission_id": str(submission_id), "workflow": self.name}
            )
            if len(compensations):
                await compensations.compensate()
            return WorkflowResult.failure(str(e), documents=getattr(e, "results", None))

    async def require_submission(self, submission_id: UUID) -> Submission:
        submission = await self.repos.submissions.get_by_id(submission_id)
        if not submission:
            raise DocumentNotFoundError(f"Submission {submission_id} not found")
        return submission

    async def regenerate_documents(
        self,
        submission_id: UUID,
        actor: CurrentUser,
        document_types=GENERATED_DOCUMENT_TYPES,
    ) -> List[DocumentResult]:
        """Regenerate from the rows just written. Raises RegenerationError on any failure."""
        jobs = await self.bags.build_jobs(submission_id, document_types)
        return await self.regeneration.regenerate_many(submission_id, jobs, actor)

    def result(self, status: str, documents: List[DocumentResult]) -> WorkflowResult:
        return WorkflowResult(
            success=True,
            message=self.success_message if status == PENDING else self.pending_issues_message,
            status=status,
            documents=documents,
        )

    def timestamp(self) -> int:
        return round(self.clock() * 1000)
