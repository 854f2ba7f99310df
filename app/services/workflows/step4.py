"""Step 4: consent form revision."""

from typing import Optional
from uuid import UUID

from app.core.config import settings
from app.schemas.auth import CurrentUser
from app.schemas.common import WorkflowResult
from app.schemas.consent import ConsentData
from app.services.saga import CompensationLog
from app.services.workflows.base import RevisionWorkflow


class Step4Workflow(RevisionWorkflow):
    """Saves the consent form and regenerates only the consent PDF."""

    name = "step4"

    async def run(
        self,
        submission_id: UUID,
        payload: ConsentData,
        actor: CurrentUser = None,
        compensations: Optional[CompensationLog] = None,
    ) -> WorkflowResult:
        await self.require_submission(submission_id)

        await self.repos.consent_forms.upsert_for_submission(
            submission_id,
            consent_type=payload.consent_type,
            informed_consent_for=payload.informed_consent_for,
            contact_person=payload.contact_person,
            contact_number=payload.contact_number,
            adult_consent=payload.adult_consent_blob(),
            minor_assent=payload.minor_assent_blob(),
        )

        documents = await self.regenerate_documents(
            submission_id, actor, document_types=("consent_form",)
        )

        await self.verification.reset_verification(submission_id, "consent_form")
        status = await self.verification.recompute_status(
            submission_id, settings.revision.step4_status_rule, resolve_comments=True
        )
        return self.result(status, documents)
