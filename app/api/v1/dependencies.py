"""Request-scoped dependencies shared by the v1 endpoints."""

from typing import Annotated, Type, TypeVar

from fastapi import Depends, HTTPException, UploadFile, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session as get_session
from app.repositories.bundle import RepositoryBundle
from app.schemas.files import NewFile
from app.services.regeneration_service import RegenerationService
from app.services.storage_service import StorageService

ModelT = TypeVar("ModelT", bound=BaseModel)


async def get_repositories(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> RepositoryBundle:
    return RepositoryBundle(db_session)


async def get_storage_service() -> StorageService:
    return StorageService()


async def get_regeneration_service(
    storage: Annotated[StorageService, Depends(get_storage_service)]
) -> RegenerationService:
    return RegenerationService(storage=storage)


async def read_upload(upload: UploadFile) -> NewFile:
    """Read a multipart file into memory as a file still to be stored."""
    return NewFile(
        content=await upload.read(),
        file_name=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )


def parse_form_payload(model: Type[ModelT], raw: str) -> ModelT:
    """Validate the JSON ``payload`` field of a multipart request.

    Raises:
        HTTPException: 422 with the validation errors
    """
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
