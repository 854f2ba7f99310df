"""Document endpoints: ad-hoc regeneration, file replacement and title sync."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from pydantic import BaseModel, Field

from app.api.v1.dependencies import (
    get_regeneration_service,
    get_repositories,
    get_storage_service,
    read_upload,
)
from app.api.v1.endpoints.revisions import workflow_response
from app.core.auth import get_current_user
from app.core.exceptions import AppError
from app.repositories.bundle import RepositoryBundle
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse
from app.services.document_bags import DocumentBagBuilder
from app.services.pdf.renderers import RENDERERS
from app.services.regeneration_service import RegenerationService
from app.services.storage_service import StorageService
from app.services.workflows.quick_revision import QuickRevisionWorkflow
from app.services.workflows.title import TitleUpdateWorkflow
from app.utils.logging import get_logger
from app.utils.responses import create_api_response, create_error_detail, http_error

LOGGER = get_logger(__name__)

router = APIRouter()


class TitleUpdate(BaseModel):
    title: str = Field(..., min_length=1, description="New submission title")


async def get_quick_revision_workflow(
    repos: Annotated[RepositoryBundle, Depends(get_repositories)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    regeneration: Annotated[RegenerationService, Depends(get_regeneration_service)],
) -> QuickRevisionWorkflow:
    return QuickRevisionWorkflow(repos, storage=storage, regeneration=regeneration)


async def get_title_workflow(
    repos: Annotated[RepositoryBundle, Depends(get_repositories)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    regeneration: Annotated[RegenerationService, Depends(get_regeneration_service)],
) -> TitleUpdateWorkflow:
    return TitleUpdateWorkflow(repos, storage=storage, regeneration=regeneration)


@router.post(
    "/{submission_id}/documents/{document_type}/regenerate",
    response_model=ApiResponse,
    summary="Regenerate a generated document from current data",
    operation_id="regenerate_document",
)
async def regenerate_document(
    request: Request,
    submission_id: UUID,
    document_type: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    repos: Annotated[RepositoryBundle, Depends(get_repositories)] = None,
    storage: Annotated[StorageService, Depends(get_storage_service)] = None,
    regeneration: Annotated[RegenerationService, Depends(get_regeneration_service)] = None,
) -> ApiResponse:
    """Re-render one document with the submission's current title. Verifications are untouched."""
    spec = RENDERERS.get(document_type)
    if spec is None:
        error_detail = create_error_detail(
            title="Unknown Document Type",
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Document type '{document_type}' is not generated",
            request=request
        )
        raise HTTPException(status_code=422, detail=error_detail.model_dump(mode="json"))

    try:
        submission = await repos.submissions.get_by_id(submission_id)
        if not submission:
            error_detail = create_error_detail(
                title="Submission Not Found",
                status=status.HTTP_404_NOT_FOUND,
                detail=f"Submission with ID {submission_id} not found",
                request=request
            )
            raise HTTPException(status_code=404, detail=error_detail.model_dump(mode="json"))

        bag = await DocumentBagBuilder(repos, storage).bag_for(submission_id, document_type)
        result = await regeneration.regenerate_pdf_with_title(
            submission_id, document_type, bag, spec.render, spec.file_prefix, current_user
        )
    except AppError as e:
        raise http_error(e, request) from e

    return create_api_response(
        data=result,
        message="Document regenerated successfully" if result.success else (result.error or "Regeneration failed"),
        status=result.success,
        request=request,
    )


@router.post(
    "/{submission_id}/documents/{document_type}/replace",
    response_model=ApiResponse,
    summary="Replace an uploaded supporting document",
    operation_id="replace_document",
)
async def replace_document(
    request: Request,
    submission_id: UUID,
    document_type: str,
    file: UploadFile = File(..., description="Replacement file"),
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    workflow: Annotated[QuickRevisionWorkflow, Depends(get_quick_revision_workflow)] = None,
) -> ApiResponse:
    """Swap the stored file and reset the document's verification."""
    new_file = await read_upload(file)
    result = await workflow.save(submission_id, new_file, current_user, document_type=document_type)
    return workflow_response(result, request)


@router.put(
    "/{submission_id}/title",
    response_model=ApiResponse,
    summary="Rename a submission",
    operation_id="update_submission_title",
)
async def update_submission_title(
    request: Request,
    submission_id: UUID,
    body: TitleUpdate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    workflow: Annotated[TitleUpdateWorkflow, Depends(get_title_workflow)] = None,
) -> ApiResponse:
    """Update the title everywhere it appears and regenerate the generated documents."""
    result = await workflow.update_submission_title(submission_id, body.title, current_user)
    return workflow_response(result, request)
