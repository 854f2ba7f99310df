"""Step 2: application form revision."""

from typing import Optional, Union
from uuid import UUID

from app.core.config import settings
from app.schemas.application_form import Step2Request
from app.schemas.auth import CurrentUser
from app.schemas.common import WorkflowResult
from app.schemas.files import NewFile, StoredPath
from app.services.saga import CompensationLog
from app.services.workflows.base import RevisionWorkflow
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

TechnicalReview = Optional[Union[NewFile, StoredPath]]


class Step2Workflow(RevisionWorkflow):
    """Saves the application form and regenerates all three generated documents.

    Only the application form's verification is reset. Status uses the
    step-2 rule and open comments are left alone.
    """

    name = "step2"

    async def run(
        self,
        submission_id: UUID,
        payload: Step2Request,
        actor: CurrentUser = None,
        compensations: Optional[CompensationLog] = None,
        technical_review: TechnicalReview = None,
    ) -> WorkflowResult:
        await self.require_submission(submission_id)

        await self._handle_technical_review(submission_id, technical_review)

        form = payload.form
        await self.repos.application_forms.upsert_for_submission(
            submission_id,
            **form.to_columns(payload.co_researchers, payload.technical_advisers),
        )

        # The title lives on both the submission and the protocol
        await self.repos.submissions.update(
            submission_id, title=form.title, co_authors=payload.co_researchers
        )
        protocol = await self.repos.protocols.update_for_submission(submission_id, title=form.title)
        if protocol is None:
            LOGGER.info(
                "No research protocol yet, title kept on the submission only",
                extra={"submission_id": str(submission_id)}
            )

        documents = await self.regenerate_documents(submission_id, actor)

        await self.verification.reset_verification(submission_id, "application_form")
        status = await self.verification.recompute_status(
            submission_id, settings.revision.step2_status_rule, resolve_comments=False
        )
        return self.result(status, documents)

    async def _handle_technical_review(self, submission_id: UUID, technical_review: TechnicalReview) -> None:
        if technical_review is None:
            removed = await self.repos.documents.delete_by_type(submission_id, "technical_review")
            if removed:
                LOGGER.info(
                    f"Removed {removed} technical review rows",
                    extra={"submission_id": str(submission_id)}
                )
            return

        if isinstance(technical_review, StoredPath):
            return

        path = f"submissions/{submission_id}/technical_review.{technical_review.extension}"
        await self.storage.upload_file(
            technical_review.content,
            path,
            content_type=technical_review.content_type,
            upsert=True,
        )
        await self.repos.documents.delete_by_type(submission_id, "technical_review")
        await self.repos.documents.create(
            submission_id=submission_id,
            document_type="technical_review",
            file_name=technical_review.file_name or f"technical_review.{technical_review.extension}",
            file_size=technical_review.size,
            file_url=path,
        )
