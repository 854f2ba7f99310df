"""Builds renderer data bags from the current database state."""

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import AppError, ValidationError
from app.repositories.bundle import RepositoryBundle
from app.schemas.application_form import ApplicationFormBag
from app.schemas.consent import ConsentBag
from app.schemas.protocol import PROTOCOL_SECTIONS, ProtocolBag, ProtocolResearcher, section_column
from app.services.pdf.renderers import GENERATED_DOCUMENT_TYPES, RENDERERS
from app.services.regeneration_service import RegenerationJob
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentBagBuilder:
    """Reads a submission's rows and shapes them for each renderer."""

    def __init__(self, repos: RepositoryBundle, storage: StorageService):
        self.repos = repos
        self.storage = storage

    async def application_form_bag(self, submission_id: UUID) -> ApplicationFormBag:
        submission = await self.repos.submissions.get_by_id(submission_id)
        form = await self.repos.application_forms.get_by_submission(submission_id)
        title = submission.title if submission else None
        if not form:
            return ApplicationFormBag(title=title)
        co_authors = submission.co_authors if submission and submission.co_authors is not None else None
        return ApplicationFormBag.from_row(form, title=title, co_authors=co_authors)

    async def protocol_bag(self, submission_id: UUID) -> ProtocolBag:
        protocol = await self.repos.protocols.get_by_submission(submission_id)
        if not protocol:
            return ProtocolBag(title=await self.repos.submissions.get_title(submission_id))

        sections = {
            section: getattr(protocol, section_column(section)) or ""
            for section in PROTOCOL_SECTIONS
        }
        researchers = [
            ProtocolResearcher(
                name=entry.get("name") or "",
                signature=await self._signature_for_pdf(entry),
            )
            for entry in (protocol.researchers or [])
        ]
        return ProtocolBag(title=protocol.title, sections=sections, researchers=researchers)

    async def consent_bag(self, submission_id: UUID) -> ConsentBag:
        consent = await self.repos.consent_forms.get_by_submission(submission_id)
        title = await self.repos.submissions.get_title(submission_id)
        if not consent:
            return ConsentBag(title=title)
        return ConsentBag.from_row(consent, title=title)

    async def bag_for(self, submission_id: UUID, document_type: str) -> BaseModel:
        if document_type == "application_form":
            return await self.application_form_bag(submission_id)
        if document_type == "research_protocol":
            return await self.protocol_bag(submission_id)
        if document_type == "consent_form":
            return await self.consent_bag(submission_id)
        raise ValidationError(f"Document type '{document_type}' is not generated")

    async def build_jobs(
        self,
        submission_id: UUID,
        document_types: Iterable[str] = GENERATED_DOCUMENT_TYPES,
    ) -> List[RegenerationJob]:
        """Regeneration jobs for the given generated document types."""
        jobs = []
        for document_type in document_types:
            spec = RENDERERS[document_type]
            jobs.append(
                RegenerationJob(
                    document_type=document_type,
                    data_bag=await self.bag_for(submission_id, document_type),
                    render_fn=spec.render,
                    file_prefix=spec.file_prefix,
                )
            )
        return jobs

    async def _signature_for_pdf(self, entry: Dict) -> Optional[str]:
        """Short-lived signed URL of a stored signature, falling back to its base64."""
        path = entry.get("signature_path")
        fallback = entry.get("signature_base64")
        if not path:
            return fallback
        try:
            signed = await self.storage.get_signed_url(path, settings.storage.signed_url_ttl)
            return signed["signed_url"]
        except AppError as e:
            LOGGER.warning(
                f"Could not sign signature {path}, using base64: {str(e)}",
                extra={"path": path}
            )
            return fallback
