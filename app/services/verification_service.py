"""Document verification bookkeeping and submission status derivation."""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_snake

from app.core.exceptions import DocumentNotFoundError, ValidationError
from app.database.models import DocumentVerification, UploadedDocument
from app.repositories.bundle import RepositoryBundle
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

PENDING = "pending"
NEEDS_REVISION = "needs_revision"
PENDING_REVIEW = "pending_review"
AWAITING_CLASSIFICATION = "awaiting_classification"

NULL_ONLY = "null_only"
NULL_OR_APPROVED = "null_or_approved"

# Revision-request checklist keys and the document types they reject
CHECKLIST_DOCUMENT_TYPES: Dict[str, str] = {
    "research_protocol": "research_protocol",
    "consent_form": "consent_form",
    "research_instrument": "research_instrument",
    "endorsement_letter": "endorsement_letter",
    "proposal_defense": "proposal_defense",
    "application_form": "application_form",
}

CHECKLIST_LABELS: Dict[str, str] = {
    "research_protocol": "Research Protocol",
    "consent_form": "Informed Consent Form",
    "research_instrument": "Research Instrument",
    "endorsement_letter": "Endorsement Letter",
    "proposal_defense": "Proposal Defense",
    "application_form": "Application Form",
}


def derive_status(approvals: Iterable[Optional[bool]], rule: str) -> str:
    """Reduce every verification of a submission to ``pending`` or ``needs_revision``.

    ``null_only``: pending only while no verification has been decided.
    ``null_or_approved``: approved verifications count as passing too.
    """
    approvals = list(approvals)
    if rule == NULL_ONLY:
        passing = all(a is None for a in approvals)
    elif rule == NULL_OR_APPROVED:
        passing = all(a is None or a is True for a in approvals)
    else:
        raise ValidationError(f"Unknown status rule '{rule}'")
    return PENDING if passing else NEEDS_REVISION


def derive_review_status(approvals: Iterable[Optional[bool]]) -> str:
    """Status after a reviewer records decisions."""
    approvals = list(approvals)
    if any(a is False for a in approvals):
        return NEEDS_REVISION
    if approvals and all(a is True for a in approvals):
        return AWAITING_CLASSIFICATION
    return PENDING_REVIEW


class VerificationDecision(BaseModel):
    document_id: UUID
    is_approved: Optional[bool] = None
    feedback_comment: Optional[str] = None


class RevisionRequest(BaseModel):
    comment: str = Field(..., min_length=1)
    checklist: Dict[str, bool] = Field(default_factory=dict)

    @field_validator("checklist")
    @classmethod
    def _snake_keys(cls, value: Dict[str, bool]) -> Dict[str, bool]:
        # The staff UI sends camelCase keys
        return {to_snake(k): v for k, v in value.items()}


class VerificationService:
    """Reads and writes document_verifications for one submission at a time."""

    def __init__(self, repos: RepositoryBundle):
        self.repos = repos

    async def reset_verification(
        self, submission_id: UUID, document_type: str
    ) -> Optional[DocumentVerification]:
        """Clear the verification of a document type, creating it if missing.

        Returns:
            The verification row, or None when the submission has no such document
        """
        document = await self.repos.documents.get_by_type(submission_id, document_type)
        if not document:
            LOGGER.warning(
                f"No {document_type} document to reset verification for",
                extra={"submission_id": str(submission_id), "document_type": document_type}
            )
            return None
        return await self.reset_document(document)

    async def reset_document(self, document: UploadedDocument) -> DocumentVerification:
        existing = await self.repos.verifications.get_by_document(document.id)
        if existing:
            LOGGER.info(
                f"Clearing verification {existing.id} of {document.document_type}",
                extra={"submission_id": str(document.submission_id)}
            )
            return await self.repos.verifications.update(
                existing.id,
                is_approved=None,
                feedback_comment=None,
                verified_at=None,
                verified_by=None,
            )

        LOGGER.info(
            f"Creating verification for {document.document_type}",
            extra={"submission_id": str(document.submission_id)}
        )
        return await self.repos.verifications.create(
            document_id=document.id,
            submission_id=document.submission_id,
            is_approved=None,
        )

    async def recompute_status(
        self, submission_id: UUID, rule: str, resolve_comments: bool = False
    ) -> str:
        """Re-scan every verification, store the derived status and optionally resolve comments.

        Comments are only resolved when the result is ``pending``.
        """
        verifications = await self.repos.verifications.list_for_submission(submission_id)
        status = derive_status((v.is_approved for v in verifications), rule)
        await self.repos.submissions.set_status(submission_id, status)

        resolved = 0
        if resolve_comments and status == PENDING:
            resolved = await self.repos.comments.resolve_open(submission_id)

        LOGGER.info(
            f"Submission {submission_id} is now {status}",
            extra={
                "submission_id": str(submission_id),
                "rule": rule,
                "verifications": len(verifications),
                "comments_resolved": resolved,
            }
        )
        return status

    async def record_decisions(
        self,
        submission_id: UUID,
        decisions: List[VerificationDecision],
        reviewer_id: str,
    ) -> str:
        """Store reviewer decisions and move the submission to its review status."""
        if not decisions:
            raise ValidationError("At least one verification decision is required")

        now = datetime.now(timezone.utc)
        for decision in decisions:
            document = await self.repos.documents.get_by_id(decision.document_id)
            if not document or document.submission_id != submission_id:
                raise DocumentNotFoundError(
                    f"Document {decision.document_id} not found for submission {submission_id}"
                )
            fields = {
                "is_approved": decision.is_approved,
                "feedback_comment": decision.feedback_comment,
                "verified_at": now if decision.is_approved is not None else None,
                "verified_by": reviewer_id,
            }
            existing = await self.repos.verifications.get_by_document(document.id)
            if existing:
                await self.repos.verifications.update(existing.id, **fields)
            else:
                await self.repos.verifications.create(
                    document_id=document.id, submission_id=submission_id, **fields
                )

        verifications = await self.repos.verifications.list_for_submission(submission_id)
        status = derive_review_status(v.is_approved for v in verifications)
        await self.repos.submissions.set_status(submission_id, status)
        LOGGER.info(
            f"Recorded {len(decisions)} decisions, submission {submission_id} is now {status}",
            extra={"submission_id": str(submission_id), "reviewer_id": reviewer_id}
        )
        return status

    async def request_revision(
        self,
        submission_id: UUID,
        request: RevisionRequest,
        actor_id: str,
    ) -> List[str]:
        """Leave a revision-request comment and reject the checked documents.

        Returns:
            Document types whose verification was marked rejected
        """
        unknown = [k for k, checked in request.checklist.items() if checked and k not in CHECKLIST_DOCUMENT_TYPES]
        if unknown:
            raise ValidationError(f"Unknown checklist items: {', '.join(unknown)}")

        checked = [k for k, value in request.checklist.items() if value]
        comment_text = request.comment
        if checked:
            listed = "\n".join(f"- {CHECKLIST_LABELS[k]}" for k in checked)
            comment_text = f"Documents requiring revision:\n{listed}\n\nFeedback:\n{request.comment}"

        await self.repos.comments.create(
            submission_id=submission_id,
            user_id=actor_id,
            comment_text=comment_text,
            comment_type="revision_request",
            is_resolved=False,
        )

        rejected: List[str] = []
        document_types = [CHECKLIST_DOCUMENT_TYPES[k] for k in checked]
        if document_types:
            documents = await self.repos.documents.list_by_types(submission_id, document_types)
            now = datetime.now(timezone.utc)
            for document in documents:
                existing = await self.repos.verifications.get_by_document(document.id)
                if existing:
                    await self.repos.verifications.update(existing.id, is_approved=False)
                else:
                    await self.repos.verifications.create(
                        document_id=document.id,
                        submission_id=submission_id,
                        is_approved=False,
                        feedback_comment=comment_text,
                        verified_at=now,
                        verified_by=actor_id,
                    )
                rejected.append(document.document_type)
            if not documents:
                LOGGER.warning(
                    "No uploaded documents match the checked revision items",
                    extra={"submission_id": str(submission_id), "document_types": document_types}
                )

        await self.repos.submissions.set_status(submission_id, NEEDS_REVISION)
        return rejected
