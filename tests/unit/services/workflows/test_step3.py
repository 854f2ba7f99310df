import base64

import pytest

from app.core.exceptions import PersistenceError
from app.schemas.files import NewFile, RemoteUrl, ResearcherSignature, StoredPath
from app.schemas.protocol import PROTOCOL_SECTIONS, ProtocolData
from app.services.workflows.step3 import Step3Workflow

PNG = base64.b64encode(b"\x89PNG\r\n\x1a\nimage").decode()


def protocol_data(researchers=None, methodology=None):
    sections = {section: f"<p>{section} text</p>" for section in PROTOCOL_SECTIONS}
    if methodology is not None:
        sections["methodology"] = methodology
    return ProtocolData(
        title="Sleep and Study Habits",
        sections=sections,
        researchers=researchers or [],
    )


def drawn_signature():
    return ResearcherSignature(
        id="r1",
        name="Ana Cruz",
        signature=NewFile(content=b"signature", content_type="image/png"),
        signature_base64=f"data:image/png;base64,{base64.b64encode(b'signature').decode()}",
    )


@pytest.mark.asyncio
async def test_rejected_protocol_is_reset_and_counted(
    make_workflow, repos, submission, actor, add_document
):
    protocol_doc = await add_document(
        submission, "research_protocol", approved=False, feedback="Add sample size", revision_count=2
    )
    await add_document(submission, "application_form", approved=True)
    comment = await repos.comments.create(
        submission_id=submission.id, user_id="staff-1", comment_text="Add sample size", comment_type="revision_request"
    )

    result = await make_workflow(Step3Workflow).save(submission.id, protocol_data(), actor)

    assert result.success is True, result.error
    verification = await repos.verifications.get_by_document(protocol_doc.id)
    assert verification.is_approved is None
    assert verification.feedback_comment is None
    assert verification.verified_at is None
    assert repos.documents.of_type(submission.id, "research_protocol")[0].revision_count == 3
    # Remaining verification is approved, so the submission is pending again
    assert result.status == "pending"
    assert comment.is_resolved is True


@pytest.mark.asyncio
async def test_other_rejection_keeps_comments_open(make_workflow, repos, submission, actor, add_document):
    await add_document(submission, "research_protocol", approved=False)
    await add_document(submission, "consent_form", approved=False)
    comment = await repos.comments.create(
        submission_id=submission.id, user_id="staff-1", comment_text="Fix consent", comment_type="revision_request"
    )

    result = await make_workflow(Step3Workflow).save(submission.id, protocol_data(), actor)

    assert result.status == "needs_revision"
    assert comment.is_resolved is False


@pytest.mark.asyncio
async def test_first_save_starts_revision_count_at_one(make_workflow, repos, submission, actor):
    await make_workflow(Step3Workflow).save(submission.id, protocol_data(), actor)

    assert repos.documents.of_type(submission.id, "research_protocol")[0].revision_count == 1


@pytest.mark.asyncio
async def test_inline_images_are_stored_and_recorded(make_workflow, repos, storage, submission, actor):
    html = f'<p>Flow</p><img src="data:image/png;base64,{PNG}"><img src="data:image/png;base64,{PNG}">'

    await make_workflow(Step3Workflow).save(submission.id, protocol_data(methodology=html), actor)

    protocol = await repos.protocols.get_by_submission(submission.id)
    assert "data:image" not in protocol.methodology
    assert "https://public.test/user-123/protocol-images/methodology-1-" in protocol.methodology

    images = repos.documents.of_type(submission.id, "protocol_image_methodology")
    assert sorted(i.file_name for i in images) == ["methodology-image-1.png", "methodology-image-2.png"]
    assert all(i.file_url in storage.objects for i in images)


@pytest.mark.asyncio
async def test_protocol_row_and_title(make_workflow, repos, submission, actor, stub_renderers):
    submission.title = "Old"

    await make_workflow(Step3Workflow).save(submission.id, protocol_data(), actor)

    protocol = await repos.protocols.get_by_submission(submission.id)
    assert protocol.title == "Sleep and Study Habits"
    assert protocol.research_references == "<p>references text</p>"
    assert submission.title == "Sleep and Study Habits"
    assert stub_renderers["research_protocol"][0].sections["introduction"] == "<p>introduction text</p>"


@pytest.mark.asyncio
async def test_new_signature_is_uploaded(make_workflow, repos, storage, submission, actor, stub_renderers):
    await make_workflow(Step3Workflow).save(
        submission.id, protocol_data(researchers=[drawn_signature()]), actor
    )

    protocol = await repos.protocols.get_by_submission(submission.id)
    stored = protocol.researchers[0]
    assert stored["id"] == "r1"
    assert stored["name"] == "Ana Cruz"
    assert stored["signature_path"].startswith("user-123/signatures/researcher-1-")
    assert stored["signature_path"].endswith(".png")
    assert storage.objects[stored["signature_path"]] == b"signature"
    assert stored["signature_base64"].startswith("data:image/png;base64,")

    drawn = stub_renderers["research_protocol"][0].researchers[0]
    assert drawn.signature == f"https://signed.test/{stored['signature_path']}"


@pytest.mark.asyncio
async def test_stored_signature_path_is_kept(make_workflow, repos, storage, submission, actor):
    researcher = ResearcherSignature(
        id="r2", name="Ben Reyes", signature=StoredPath(path="user-123/signatures/researcher-2-1.png")
    )

    await make_workflow(Step3Workflow).save(submission.id, protocol_data(researchers=[researcher]), actor)

    protocol = await repos.protocols.get_by_submission(submission.id)
    assert protocol.researchers[0]["signature_path"] == "user-123/signatures/researcher-2-1.png"
    assert not any("/signatures/" in path for path in storage.uploads)


@pytest.mark.asyncio
async def test_unsignable_stored_signature_falls_back_to_base64(
    make_workflow, stub_renderers, repos, storage, submission, actor
):
    companion = f"data:image/png;base64,{PNG}"
    researcher = ResearcherSignature(
        id="r2",
        name="Ben Reyes",
        signature=StoredPath(path="user-123/signatures/missing.png"),
        signature_base64=companion,
    )

    result = await make_workflow(Step3Workflow).save(
        submission.id, protocol_data(researchers=[researcher]), actor
    )

    assert result.success is True
    assert "user-123/signatures/missing.png" not in storage.objects
    assert stub_renderers["research_protocol"][0].researchers[0].signature == companion


@pytest.mark.asyncio
async def test_remote_signature_url_is_not_stored_as_a_path(
    make_workflow, stub_renderers, repos, storage, submission, actor
):
    companion = f"data:image/png;base64,{PNG}"
    researcher = ResearcherSignature(
        id="r3",
        name="Cy Lim",
        signature=RemoteUrl(url="https://cdn.example.org/sig.png"),
        signature_base64=companion,
    )

    result = await make_workflow(Step3Workflow).save(
        submission.id, protocol_data(researchers=[researcher]), actor
    )

    assert result.success is True
    stored = (await repos.protocols.get_by_submission(submission.id)).researchers[0]
    assert stored["signature_path"] is None
    assert stored["signature_base64"] == companion
    assert not any("/signatures/" in path for path in storage.uploads)
    assert stub_renderers["research_protocol"][0].researchers[0].signature == companion


@pytest.mark.asyncio
async def test_signature_upload_failure_is_not_fatal(make_workflow, repos, storage, submission, actor):
    storage.fail_upload = lambda path: "/signatures/" in path

    result = await make_workflow(Step3Workflow).save(
        submission.id, protocol_data(researchers=[drawn_signature()]), actor
    )

    assert result.success is True
    protocol = await repos.protocols.get_by_submission(submission.id)
    assert protocol.researchers[0]["signature_path"] is None


@pytest.mark.asyncio
async def test_failed_protocol_write_removes_new_uploads(
    make_workflow, repos, storage, submission, actor, monkeypatch
):
    async def broken_upsert(self, submission_id, **fields):
        raise PersistenceError("insert failed")

    monkeypatch.setattr(type(repos.protocols), "upsert_for_submission", broken_upsert)
    html = f'<img src="data:image/png;base64,{PNG}">'

    result = await make_workflow(Step3Workflow).save(
        submission.id, protocol_data(researchers=[drawn_signature()], methodology=html), actor
    )

    assert result.success is False
    assert result.error == "insert failed"
    assert len(storage.uploads) == 2
    assert storage.objects == {}
    assert sorted(storage.removed) == sorted(storage.uploads)


@pytest.mark.asyncio
async def test_regeneration_failure_keeps_saved_uploads(
    make_workflow, repos, storage, submission, actor, failing_renderer
):
    failing_renderer("research_protocol")

    result = await make_workflow(Step3Workflow).save(
        submission.id, protocol_data(researchers=[drawn_signature()]), actor
    )

    assert result.success is False
    protocol = await repos.protocols.get_by_submission(submission.id)
    assert protocol.researchers[0]["signature_path"] in storage.objects
