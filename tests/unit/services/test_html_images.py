import base64

import pytest

from app.services.html_images import extract_and_upload_images
from app.services.saga import CompensationLog

PNG = base64.b64encode(b"\x89PNG\r\n\x1a\nfake").decode()
JPEG = base64.b64encode(b"\xff\xd8\xfffake").decode()


@pytest.mark.asyncio
async def test_two_inline_images_are_uploaded_and_replaced(storage, clock):
    html = (
        f'<p>Figure 1</p><img src="data:image/png;base64,{PNG}" alt="a">'
        f'<p>Figure 2</p><img alt="b" src="data:image/jpeg;base64,{JPEG}">'
    )
    compensations = CompensationLog()

    updated, images = await extract_and_upload_images(
        html, "methodology", "user-123", storage, compensations=compensations, clock=clock
    )

    assert "data:image" not in updated
    assert [i.image_number for i in images] == [1, 2]
    assert images[0].file_path.startswith("user-123/protocol-images/methodology-1-")
    assert images[1].extension == "jpeg"
    assert images[0].public_url in updated and images[1].public_url in updated
    assert storage.objects[images[0].file_path] == b"\x89PNG\r\n\x1a\nfake"
    assert 'alt="a"' in updated
    assert len(compensations) == 2


@pytest.mark.asyncio
async def test_html_without_inline_images_is_unchanged(storage):
    html = '<p>Plain text</p><img src="https://cdn.example.com/chart.png">'

    updated, images = await extract_and_upload_images(html, "background", "user-123", storage)

    assert updated == html
    assert images == []
    assert storage.uploads == []


@pytest.mark.asyncio
async def test_empty_html(storage):
    assert await extract_and_upload_images(None, "background", "user-123", storage) == ("", [])


@pytest.mark.asyncio
async def test_failed_upload_keeps_the_inline_image(storage, clock):
    html = (
        f'<img alt="one" src="data:image/png;base64,{PNG}">'
        f'<img alt="two" src="data:image/png;base64,{PNG}">'
    )
    storage.fail_upload = lambda path: "/population-1-" in path

    updated, images = await extract_and_upload_images(
        html, "population", "user-123", storage, clock=clock
    )

    assert [i.image_number for i in images] == [2]
    assert updated.count("data:image/png") == 1
    assert images[0].public_url in updated.split("alt=\"two\"")[1]
