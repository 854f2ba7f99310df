"""Revision save endpoints of the submission wizard (steps 2 to 4)."""

from typing import Annotated, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from app.api.v1.dependencies import (
    get_regeneration_service,
    get_repositories,
    get_storage_service,
    parse_form_payload,
    read_upload,
)
from app.core.auth import get_current_user
from app.core.exceptions import ValidationError
from app.repositories.bundle import RepositoryBundle
from app.schemas.application_form import Step2Request
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse, WorkflowResult
from app.schemas.consent import ConsentData
from app.schemas.files import NewFile, ResearcherSignature, StoredPath, classify_signature
from app.schemas.protocol import ProtocolData, Step3Request
from app.services.regeneration_service import RegenerationService
from app.services.storage_service import StorageService
from app.services.workflows.step2 import Step2Workflow
from app.services.workflows.step3 import Step3Workflow
from app.services.workflows.step4 import Step4Workflow
from app.utils.logging import get_logger
from app.utils.responses import create_api_response, http_error

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_step2_workflow(
    repos: Annotated[RepositoryBundle, Depends(get_repositories)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    regeneration: Annotated[RegenerationService, Depends(get_regeneration_service)],
) -> Step2Workflow:
    return Step2Workflow(repos, storage=storage, regeneration=regeneration)


async def get_step3_workflow(
    repos: Annotated[RepositoryBundle, Depends(get_repositories)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    regeneration: Annotated[RegenerationService, Depends(get_regeneration_service)],
) -> Step3Workflow:
    return Step3Workflow(repos, storage=storage, regeneration=regeneration)


async def get_step4_workflow(
    repos: Annotated[RepositoryBundle, Depends(get_repositories)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    regeneration: Annotated[RegenerationService, Depends(get_regeneration_service)],
) -> Step4Workflow:
    return Step4Workflow(repos, storage=storage, regeneration=regeneration)


def workflow_response(result: WorkflowResult, request: Request) -> ApiResponse:
    return create_api_response(
        data=result,
        message=result.message if result.success else (result.error or "Save failed"),
        status=result.success,
        request=request,
    )


def build_protocol_data(body: Step3Request, uploads: Dict[int, NewFile]) -> ProtocolData:
    """Classify every researcher signature of a Step-3 request."""
    researchers: List[ResearcherSignature] = []
    for researcher in body.researchers:
        upload = None
        if researcher.signature_file_index is not None:
            upload = uploads.get(researcher.signature_file_index)
            if upload is None:
                raise ValidationError(
                    f"No signature file at index {researcher.signature_file_index} "
                    f"for researcher {researcher.name}"
                )
        researchers.append(
            ResearcherSignature(
                id=researcher.id,
                name=researcher.name,
                signature=classify_signature(
                    researcher.signature, researcher.signature_base64, upload=upload
                ),
                signature_base64=researcher.signature_base64,
            )
        )
    return ProtocolData(title=body.title, sections=body.sections.as_dict(), researchers=researchers)


@router.post(
    "/{submission_id}/revisions/step2",
    response_model=ApiResponse,
    summary="Save a Step-2 application form revision",
    operation_id="save_step2_revision",
)
async def save_step2_revision(
    request: Request,
    submission_id: UUID,
    payload: str = Form(..., description="Step2Request as JSON"),
    technical_review_file: Optional[UploadFile] = File(None),
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    workflow: Annotated[Step2Workflow, Depends(get_step2_workflow)] = None,
) -> ApiResponse:
    """Persist the application form, regenerate all documents and re-derive the status."""
    body = parse_form_payload(Step2Request, payload)

    technical_review = None
    if technical_review_file is not None and technical_review_file.filename:
        technical_review = await read_upload(technical_review_file)
    elif body.existing_technical_review:
        technical_review = StoredPath(path=body.existing_technical_review)

    result = await workflow.save(
        submission_id, body, current_user, technical_review=technical_review
    )
    return workflow_response(result, request)


@router.post(
    "/{submission_id}/revisions/step3",
    response_model=ApiResponse,
    summary="Save a Step-3 research protocol revision",
    operation_id="save_step3_revision",
)
async def save_step3_revision(
    request: Request,
    submission_id: UUID,
    payload: str = Form(..., description="Step3Request as JSON"),
    signature_files: Optional[List[UploadFile]] = File(None),
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    workflow: Annotated[Step3Workflow, Depends(get_step3_workflow)] = None,
) -> ApiResponse:
    """Persist the protocol with its images and signatures, then regenerate all documents."""
    body = parse_form_payload(Step3Request, payload)
    uploads = {
        index: await read_upload(upload)
        for index, upload in enumerate(signature_files or [])
    }

    try:
        data = build_protocol_data(body, uploads)
    except ValidationError as e:
        raise http_error(e, request) from e

    result = await workflow.save(submission_id, data, current_user)
    return workflow_response(result, request)


@router.post(
    "/{submission_id}/revisions/step4",
    response_model=ApiResponse,
    summary="Save a Step-4 consent form revision",
    operation_id="save_step4_revision",
)
async def save_step4_revision(
    request: Request,
    submission_id: UUID,
    body: ConsentData,
    current_user: Annotated[CurrentUser, Depends(get_current_user)] = None,
    workflow: Annotated[Step4Workflow, Depends(get_step4_workflow)] = None,
) -> ApiResponse:
    """Persist the consent form and regenerate the consent PDF."""
    result = await workflow.save(submission_id, body, current_user)
    return workflow_response(result, request)
