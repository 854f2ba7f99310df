"""Document regeneration: render a PDF and swap it in for the stored one.

The new blob is uploaded and the uploaded_documents row re-pointed before
the previous blob is deleted, so there is always one stored file to serve.
Verification rows are never touched here; callers reset them.
"""

import asyncio
import inspect
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.exceptions import AppError, AuthError, RenderError, RegenerationError, ValidationError
from app.repositories.bundle import BundleFactory, open_bundle
from app.schemas.auth import CurrentUser
from app.schemas.common import DocumentResult, RenderResult
from app.schemas.files import decode_base64_payload
from app.services.base_service import BaseService
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

RenderFn = Callable[[BaseModel], Any]


@dataclass
class RegenerationJob:
    """One document to regenerate in a batch."""

    document_type: str
    data_bag: BaseModel
    render_fn: RenderFn
    file_prefix: str


def placeholder_path(submission_id: UUID, file_prefix: str) -> str:
    return f"{submission_id}/{file_prefix}.pdf"


def generated_file_name(submission_id: UUID, file_prefix: str) -> str:
    return f"{file_prefix}_{submission_id}.pdf"


class RegenerationService(BaseService):
    """Regenerates generated documents (application form, protocol, consent form)."""

    def __init__(
        self,
        storage: Optional[StorageService] = None,
        bundle_factory: BundleFactory = open_bundle,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__()
        self.storage = storage or StorageService()
        self.bundle_factory = bundle_factory
        self.clock = clock

    def validate(self, submission_id, document_type, data_bag, render_fn, file_prefix, actor=None):
        if actor is None or not getattr(actor, "id", None):
            raise AuthError("User not authenticated")

    async def regenerate_pdf_with_title(
        self,
        submission_id: UUID,
        document_type: str,
        data_bag: BaseModel,
        render_fn: RenderFn,
        file_prefix: str,
        actor: Optional[CurrentUser],
    ) -> DocumentResult:
        """Render ``data_bag`` with the submission's title and replace the stored PDF.

        Raises:
            AuthError: If there is no authenticated actor

        Returns:
            DocumentResult: success with the document id and new path, or the failure reason
        """
        return await self.execute(
            submission_id, document_type, data_bag, render_fn, file_prefix, actor=actor
        )

    async def regenerate_many(
        self,
        submission_id: UUID,
        jobs: List[RegenerationJob],
        actor: Optional[CurrentUser],
    ) -> List[DocumentResult]:
        """Regenerate several documents concurrently and collect every outcome.

        Raises:
            RegenerationError: If any document failed. ``results`` lists all outcomes.
        """

        async def guarded(job: RegenerationJob) -> DocumentResult:
            try:
                return await self.regenerate_pdf_with_title(
                    submission_id, job.document_type, job.data_bag, job.render_fn,
                    job.file_prefix, actor,
                )
            except AppError as e:
                return DocumentResult(document_type=job.document_type, success=False, error=str(e))

        results = list(await asyncio.gather(*(guarded(job) for job in jobs)))

        failed = [r for r in results if not r.success]
        if failed:
            summary = "; ".join(f"{r.document_type}: {r.error}" for r in failed)
            LOGGER.error(
                f"Regeneration failed for {len(failed)} of {len(results)} documents: {summary}",
                extra={"submission_id": str(submission_id)}
            )
            raise RegenerationError(f"Failed to regenerate documents: {summary}", results=results)

        LOGGER.info(
            f"Regenerated {len(results)} documents for submission {submission_id}",
            extra={"submission_id": str(submission_id)}
        )
        return results

    async def run(
        self,
        submission_id: UUID,
        document_type: str,
        data_bag: BaseModel,
        render_fn: RenderFn,
        file_prefix: str,
        actor: Optional[CurrentUser] = None,
    ) -> DocumentResult:
        log_extra = {"submission_id": str(submission_id), "document_type": document_type}

        def failed(error: str) -> DocumentResult:
            return DocumentResult(document_type=document_type, success=False, error=error)

        async with self.bundle_factory() as repos:
            title = None
            try:
                title = await repos.submissions.get_title(submission_id)
            except AppError as e:
                LOGGER.warning(f"Could not read submission title: {str(e)}", extra=log_extra)
            if not title:
                LOGGER.warning("Submission has no title, rendering without it", extra=log_extra)
            else:
                data_bag = data_bag.model_copy(update={"title": title})

            try:
                pdf_bytes = await self._render(render_fn, data_bag)
            except (RenderError, ValidationError) as e:
                LOGGER.error(f"Rendering {document_type} failed: {str(e)}", extra=log_extra)
                return failed(str(e))

            existing = await repos.documents.get_by_type(submission_id, document_type)
            created_placeholder = existing is None
            if created_placeholder:
                existing = await repos.documents.create(
                    submission_id=submission_id,
                    document_type=document_type,
                    file_name=generated_file_name(submission_id, file_prefix),
                    file_url=placeholder_path(submission_id, file_prefix),
                    file_size=0,
                )
                LOGGER.info(f"Created {document_type} document row {existing.id}", extra=log_extra)
            previous_path = existing.file_url

            timestamp = round(self.clock() * 1000)
            # The previous blob is still stored until the row points elsewhere
            new_path = f"{actor.id}/{file_prefix}_{submission_id}_{timestamp}_{secrets.token_hex(3)}.pdf"
            try:
                await self.storage.upload_file(
                    pdf_bytes, new_path, content_type="application/pdf", upsert=False
                )
            except AppError as e:
                LOGGER.error(f"Uploading {document_type} failed: {str(e)}", extra=log_extra)
                if created_placeholder:
                    await self._discard_placeholder(repos, existing.id, log_extra)
                return failed(str(e))

            try:
                await repos.documents.update(
                    existing.id,
                    file_name=generated_file_name(submission_id, file_prefix),
                    file_size=len(pdf_bytes),
                    file_url=new_path,
                    uploaded_at=self._now(),
                )
            except AppError as e:
                LOGGER.error(f"Updating {document_type} row failed: {str(e)}", extra=log_extra)
                await self._remove_quietly([new_path], log_extra)
                if created_placeholder:
                    await self._discard_placeholder(repos, existing.id, log_extra)
                return failed(str(e))

            if previous_path and previous_path != new_path and not created_placeholder:
                await self._remove_quietly([previous_path], log_extra)

        LOGGER.info(f"Regenerated {document_type} at {new_path}", extra=log_extra)
        return DocumentResult(
            document_type=document_type,
            success=True,
            document_id=existing.id,
            pdf_path=new_path,
        )

    async def _render(self, render_fn: RenderFn, data_bag: BaseModel) -> bytes:
        if inspect.iscoroutinefunction(render_fn):
            raw = await render_fn(data_bag)
        else:
            # fpdf2 is CPU bound
            raw = await asyncio.to_thread(render_fn, data_bag)

        result = raw if isinstance(raw, RenderResult) else RenderResult.model_validate(raw)
        if not result.success:
            raise RenderError(result.error or "PDF generation failed")
        if not result.pdf_data:
            raise RenderError("PDF generation returned no data")
        return decode_base64_payload(result.pdf_data)

    async def _remove_quietly(self, paths: List[str], log_extra: dict) -> None:
        try:
            await self.storage.remove_files(paths)
        except AppError as e:
            LOGGER.warning(f"Could not delete {paths}: {str(e)}", extra=log_extra)

    async def _discard_placeholder(self, repos, document_id: UUID, log_extra: dict) -> None:
        try:
            await repos.documents.delete(document_id)
        except AppError as e:
            LOGGER.warning(f"Could not remove placeholder row {document_id}: {str(e)}", extra=log_extra)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)
