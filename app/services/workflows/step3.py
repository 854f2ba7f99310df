"""Step 3: research protocol revision."""

import asyncio
from typing import Any, Dict, List, Optional
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import AppError
from app.schemas.auth import CurrentUser
from app.schemas.common import WorkflowResult
from app.schemas.files import NewFile, ResearcherSignature, StoredPath
from app.schemas.protocol import PROTOCOL_SECTIONS, ProtocolData, section_column
from app.services.html_images import UploadedImage, extract_and_upload_images
from app.services.saga import CompensationLog
from app.services.workflows.base import RevisionWorkflow
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Step3Workflow(RevisionWorkflow):
    """Saves the protocol, moving inline images and new signatures into storage."""

    name = "step3"

    async def run(
        self,
        submission_id: UUID,
        payload: ProtocolData,
        actor: CurrentUser = None,
        compensations: Optional[CompensationLog] = None,
    ) -> WorkflowResult:
        compensations = compensations if compensations is not None else CompensationLog()
        await self.require_submission(submission_id)
        log_extra = {"submission_id": str(submission_id)}

        sections, images = await self._extract_images(payload.sections, actor.id, compensations)
        researchers = [
            await self._resolve_signature(index, researcher, actor.id, compensations)
            for index, researcher in enumerate(payload.researchers)
        ]

        columns = {section_column(section): sections[section] for section in PROTOCOL_SECTIONS}
        await self.repos.protocols.upsert_for_submission(
            submission_id, title=payload.title, researchers=researchers, **columns
        )
        # Uploads are referenced by the stored protocol from here on
        compensations.clear()

        for image in images:
            await self.repos.documents.create(
                submission_id=submission_id,
                document_type=f"protocol_image_{image.section}",
                file_name=f"{image.section}-image-{image.image_number}.{image.extension}",
                file_size=image.file_size,
                file_url=image.file_path,
            )
        if images:
            LOGGER.info(f"Stored {len(images)} protocol images", extra=log_extra)

        await self.repos.submissions.update(submission_id, title=payload.title)

        documents = await self.regenerate_documents(submission_id, actor)

        protocol_document = await self.repos.documents.get_by_type(submission_id, "research_protocol")
        if protocol_document:
            await self.repos.documents.update(
                protocol_document.id,
                revision_count=(protocol_document.revision_count or 0) + 1,
            )

        await self.verification.reset_verification(submission_id, "research_protocol")
        status = await self.verification.recompute_status(
            submission_id, settings.revision.step3_status_rule, resolve_comments=True
        )
        return self.result(status, documents)

    async def _extract_images(
        self, sections: Dict[str, str], user_id: str, compensations: CompensationLog
    ):
        """Upload the inline images of every section concurrently."""
        extracted = await asyncio.gather(*(
            extract_and_upload_images(
                sections.get(section) or "",
                section,
                user_id,
                self.storage,
                compensations=compensations,
                clock=self.clock,
            )
            for section in PROTOCOL_SECTIONS
        ))
        cleaned: Dict[str, str] = {}
        images: List[UploadedImage] = []
        for section, (html, uploaded) in zip(PROTOCOL_SECTIONS, extracted):
            cleaned[section] = html
            images.extend(uploaded)
        return cleaned, images

    async def _resolve_signature(
        self,
        index: int,
        researcher: ResearcherSignature,
        user_id: str,
        compensations: CompensationLog,
    ) -> Dict[str, Any]:
        """Stored JSON for one researcher.

        Only uploaded or already stored signatures get a path. A remote URL is not
        an object key, so it keeps only its base64 companion, and a failed upload
        leaves the path empty.
        """
        signature = researcher.signature
        path: Optional[str] = None

        if isinstance(signature, NewFile):
            candidate = f"{user_id}/signatures/researcher-{index + 1}-{self.timestamp()}.png"
            try:
                await self.storage.upload_file(
                    signature.content, candidate, content_type=signature.content_type, upsert=False
                )
                compensations.remove_uploaded(self.storage, candidate)
                path = candidate
            except AppError as e:
                LOGGER.warning(
                    f"Signature upload failed for researcher {researcher.name}: {str(e)}",
                    extra={"researcher_id": researcher.id}
                )
        elif isinstance(signature, StoredPath):
            path = signature.path

        return {
            "id": researcher.id,
            "name": researcher.name,
            "signature_path": path,
            "signature_base64": researcher.signature_base64,
        }
