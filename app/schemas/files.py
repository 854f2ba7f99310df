"""File references passed into workflows.

A signature or attachment reaches a workflow as exactly one of three
variants, decided once by ``classify_signature`` where the request is parsed.
"""

import base64
import binascii
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from app.core.exceptions import ValidationError


class NewFile(BaseModel):
    """Bytes that still need to be uploaded."""

    kind: Literal["new_file"] = "new_file"
    content: bytes
    file_name: Optional[str] = None
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if self.file_name and "." in self.file_name:
            return self.file_name.rsplit(".", 1)[1].lower()
        return self.content_type.split("/")[-1] if "/" in self.content_type else "bin"


class StoredPath(BaseModel):
    """An object key already present in the bucket."""

    kind: Literal["stored_path"] = "stored_path"
    path: str


class RemoteUrl(BaseModel):
    """A URL that is kept as is and never uploaded."""

    kind: Literal["remote_url"] = "remote_url"
    url: str


Signature = Union[NewFile, StoredPath, RemoteUrl]


class ResearcherSignature(BaseModel):
    """A protocol researcher with a classified signature."""

    id: str
    name: str
    signature: Optional[Signature] = Field(None, discriminator="kind")
    signature_base64: Optional[str] = None


def decode_base64_payload(data: str) -> bytes:
    """Decode base64 text, dropping a ``data:...;base64,`` prefix if present.

    Raises:
        ValidationError: If the text is not valid base64
    """
    if "base64," in data:
        data = data.split("base64,", 1)[1]
    try:
        return base64.b64decode(data.strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 payload: {str(e)}", original_error=e) from e


def _data_url_content_type(data: str, default: str) -> str:
    if data.startswith("data:") and ";" in data:
        return data[5:data.index(";")] or default
    return default


def classify_signature(
    value: Optional[str] = None,
    base64_data: Optional[str] = None,
    upload: Optional[NewFile] = None,
) -> Optional[Signature]:
    """Turn the raw signature fields of a request into one variant.

    Priority: uploaded file, then base64 text, then a stored path, then a URL.

    Args:
        value: The client's ``signature`` string (a stored path or a URL)
        base64_data: The client's ``signature_base64`` string
        upload: A file uploaded with the request for this researcher

    Returns:
        The signature variant, or None when the researcher has no signature
    """
    if upload is not None:
        return upload

    if base64_data:
        return NewFile(
            content=decode_base64_payload(base64_data),
            content_type=_data_url_content_type(base64_data, "image/png"),
        )

    if value:
        if value.startswith("http://") or value.startswith("https://"):
            return RemoteUrl(url=value)
        if value.startswith("data:"):
            return NewFile(
                content=decode_base64_payload(value),
                content_type=_data_url_content_type(value, "image/png"),
            )
        return StoredPath(path=value)

    return None
