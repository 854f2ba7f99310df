"""Renaming a submission."""

from typing import Optional
from uuid import UUID

from app.core.exceptions import ValidationError
from app.schemas.auth import CurrentUser
from app.schemas.common import WorkflowResult
from app.services.saga import CompensationLog
from app.services.workflows.base import RevisionWorkflow


class TitleUpdateWorkflow(RevisionWorkflow):
    """Keeps the title identical on the submission, its protocol and every generated PDF.

    Verification and status are left as they are.
    """

    name = "title"
    success_message = "Title updated successfully!"

    def validate(self, submission_id, payload, actor=None, **kwargs):
        super().validate(submission_id, payload, actor=actor)
        if not isinstance(payload, str) or not payload.strip():
            raise ValidationError("Title must not be empty")

    async def update_submission_title(
        self, submission_id: UUID, title: str, actor: Optional[CurrentUser]
    ) -> WorkflowResult:
        return await self.save(submission_id, title, actor)

    async def run(
        self,
        submission_id: UUID,
        payload: str,
        actor: CurrentUser = None,
        compensations: Optional[CompensationLog] = None,
    ) -> WorkflowResult:
        submission = await self.require_submission(submission_id)
        title = payload.strip()

        await self.repos.submissions.update(submission_id, title=title)
        await self.repos.protocols.update_for_submission(submission_id, title=title)

        documents = await self.regenerate_documents(submission_id, actor)
        return WorkflowResult(
            success=True,
            message=self.success_message,
            status=submission.status,
            documents=documents,
        )
