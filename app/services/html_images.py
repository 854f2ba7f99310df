"""Moves inline base64 images out of rich-text HTML and into storage."""

import re
import secrets
import time
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel

from app.core.exceptions import AppError
from app.schemas.files import decode_base64_payload
from app.services.saga import CompensationLog
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

INLINE_IMAGE = re.compile(r'<img[^>]+src="(data:image/[^;]+;base64,[^"]+)"[^>]*>', re.IGNORECASE)
_MIME = re.compile(r"data:([^;]+);")


class UploadedImage(BaseModel):
    section: str
    image_number: int
    file_path: str
    public_url: str
    file_size: int
    content_type: str

    @property
    def extension(self) -> str:
        return self.file_path.rsplit(".", 1)[-1]


async def extract_and_upload_images(
    html: Optional[str],
    section: str,
    user_id: str,
    storage: StorageService,
    compensations: Optional[CompensationLog] = None,
    clock: Callable[[], float] = time.time,
) -> Tuple[str, List[UploadedImage]]:
    """Upload every inline ``data:image`` of ``html`` and point its ``src`` at the stored copy.

    An image that fails to upload keeps its inline source and is left out of the result.

    Returns:
        The rewritten HTML and the uploaded images, numbered from 1 in document order
    """
    if not html:
        return html or "", []

    updated = html
    uploaded: List[UploadedImage] = []

    for index, match in enumerate(INLINE_IMAGE.finditer(html)):
        tag, data_url = match.group(0), match.group(1)
        mime = _MIME.match(data_url)
        content_type = mime.group(1) if mime else "image/png"
        extension = content_type.split("/")[-1]
        path = (
            f"{user_id}/protocol-images/{section}-{index + 1}-"
            f"{round(clock() * 1000)}-{secrets.token_hex(3)}.{extension}"
        )

        try:
            content = decode_base64_payload(data_url)
            await storage.upload_file(content, path, content_type=content_type, upsert=False)
        except AppError as e:
            LOGGER.warning(
                f"Could not upload {section} image {index + 1}: {str(e)}",
                extra={"section": section, "path": path}
            )
            continue

        if compensations is not None:
            compensations.remove_uploaded(storage, path)

        public_url = storage.get_public_url(path)
        updated = updated.replace(tag, tag.replace(data_url, public_url), 1)
        uploaded.append(
            UploadedImage(
                section=section,
                image_number=index + 1,
                file_path=path,
                public_url=public_url,
                file_size=len(content),
                content_type=content_type,
            )
        )
        LOGGER.info(f"Uploaded {section} image {index + 1}: {path}", extra={"section": section})

    return updated, uploaded
