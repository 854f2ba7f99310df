"""Reviewer endpoints: verification decisions and revision requests."""

from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.api.v1.dependencies import get_repositories
from app.core.auth import require_reviewer, require_secretariat
from app.core.exceptions import AppError, DocumentNotFoundError
from app.repositories.bundle import RepositoryBundle
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse
from app.services.verification_service import (
    NEEDS_REVISION,
    RevisionRequest,
    VerificationDecision,
    VerificationService,
)
from app.utils.logging import get_logger
from app.utils.responses import create_api_response, http_error

LOGGER = get_logger(__name__)

router = APIRouter()


class VerificationBatch(BaseModel):
    decisions: List[VerificationDecision] = Field(..., min_length=1)


async def get_verification_service(
    repos: Annotated[RepositoryBundle, Depends(get_repositories)]
) -> VerificationService:
    return VerificationService(repos)


async def _ensure_submission(repos: RepositoryBundle, submission_id: UUID, request: Request) -> None:
    if not await repos.submissions.get_by_id(submission_id):
        raise http_error(DocumentNotFoundError(f"Submission {submission_id} not found"), request)


@router.post(
    "/{submission_id}/verifications",
    response_model=ApiResponse,
    summary="Record document verification decisions",
    operation_id="record_verifications",
)
async def record_verifications(
    request: Request,
    submission_id: UUID,
    body: VerificationBatch,
    current_user: Annotated[CurrentUser, Depends(require_reviewer)] = None,
    repos: Annotated[RepositoryBundle, Depends(get_repositories)] = None,
    service: Annotated[VerificationService, Depends(get_verification_service)] = None,
) -> ApiResponse:
    """Approve or reject documents and move the submission to its review status."""
    try:
        await _ensure_submission(repos, submission_id, request)
        status = await service.record_decisions(submission_id, body.decisions, current_user.id)
    except AppError as e:
        raise http_error(e, request) from e

    return create_api_response(
        data={"submission_id": str(submission_id), "status": status},
        message="Verification saved",
        request=request,
    )


@router.post(
    "/{submission_id}/revision-requests",
    response_model=ApiResponse,
    summary="Request revisions from the researcher",
    operation_id="request_revision",
)
async def request_revision(
    request: Request,
    submission_id: UUID,
    body: RevisionRequest,
    current_user: Annotated[CurrentUser, Depends(require_secretariat)] = None,
    repos: Annotated[RepositoryBundle, Depends(get_repositories)] = None,
    service: Annotated[VerificationService, Depends(get_verification_service)] = None,
) -> ApiResponse:
    """Leave a revision comment and reject the checked documents."""
    try:
        await _ensure_submission(repos, submission_id, request)
        rejected = await service.request_revision(submission_id, body, current_user.id)
    except AppError as e:
        raise http_error(e, request) from e

    return create_api_response(
        data={
            "submission_id": str(submission_id),
            "status": NEEDS_REVISION,
            "rejected_documents": rejected,
        },
        message="Revision request sent",
        request=request,
    )
