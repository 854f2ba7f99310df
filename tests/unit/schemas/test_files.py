import base64

import pytest

from app.core.exceptions import ValidationError
from app.schemas.files import (
    NewFile,
    RemoteUrl,
    ResearcherSignature,
    StoredPath,
    classify_signature,
    decode_base64_payload,
)

SIGNATURE = base64.b64encode(b"signature-bytes").decode()


def test_upload_wins_over_everything():
    upload = NewFile(content=b"scan", file_name="sig.jpg", content_type="image/jpeg")

    result = classify_signature("user-1/signatures/old.png", SIGNATURE, upload=upload)

    assert result is upload


def test_base64_becomes_a_new_file():
    result = classify_signature("user-1/signatures/old.png", f"data:image/png;base64,{SIGNATURE}")

    assert isinstance(result, NewFile)
    assert result.content == b"signature-bytes"
    assert result.content_type == "image/png"


@pytest.mark.parametrize(
    "value, expected_type",
    [
        ("https://cdn.example.com/sig.png", RemoteUrl),
        ("http://cdn.example.com/sig.png", RemoteUrl),
        ("user-1/signatures/researcher-1-1700000000000.png", StoredPath),
        (f"data:image/png;base64,{SIGNATURE}", NewFile),
    ],
)
def test_string_value_classification(value, expected_type):
    assert isinstance(classify_signature(value), expected_type)


def test_no_signature():
    assert classify_signature(None, None) is None
    assert classify_signature("", "") is None


def test_invalid_base64_is_a_validation_error():
    with pytest.raises(ValidationError):
        decode_base64_payload("data:image/png;base64,abc")


def test_new_file_extension_and_size():
    assert NewFile(content=b"12345", file_name="Letter.PDF").extension == "pdf"
    assert NewFile(content=b"1", content_type="image/png").extension == "png"
    assert NewFile(content=b"12345").size == 5


def test_researcher_signature_discriminates_on_kind():
    researcher = ResearcherSignature.model_validate(
        {"id": "r1", "name": "Ana Cruz", "signature": {"kind": "stored_path", "path": "u/s.png"}}
    )

    assert isinstance(researcher.signature, StoredPath)
