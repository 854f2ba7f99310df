import uuid

import pytest

from app.schemas.application_form import Step2Request
from app.schemas.files import NewFile, StoredPath
from app.services.pdf.renderers import GENERATED_DOCUMENT_TYPES
from app.services.workflows.step2 import Step2Workflow


def step2_request(title="Sleep and Study Habits (revised)"):
    return Step2Request.model_validate({
        "form": {
            "title": title,
            "researcherFirstName": "Ana",
            "researcherLastName": "Cruz",
            "projectLeaderEmail": "ana@example.com",
            "institution": "State University",
            "typeOfStudy": ["survey"],
            "numParticipants": "120",
        },
        "coResearchers": [{"name": "Ben Reyes"}],
    })


@pytest.mark.asyncio
async def test_first_save_creates_form_documents_and_verification(
    make_workflow, repos, submission, actor, stub_renderers
):
    result = await make_workflow(Step2Workflow).save(submission.id, step2_request(), actor)

    assert result.success is True, result.error
    assert result.message == "Changes saved and resubmitted successfully!"
    assert result.status == "pending"
    assert submission.status == "pending"

    form = await repos.application_forms.get_by_submission(submission.id)
    assert form.num_participants == 120
    assert form.contact_info["email"] == "ana@example.com"

    for document_type in GENERATED_DOCUMENT_TYPES:
        assert len(repos.documents.of_type(submission.id, document_type)) == 1

    verifications = await repos.verifications.list_for_submission(submission.id)
    assert len(verifications) == 1
    assert verifications[0].is_approved is None
    application_form = repos.documents.of_type(submission.id, "application_form")[0]
    assert verifications[0].document_id == application_form.id


@pytest.mark.asyncio
async def test_title_and_co_authors_are_copied(make_workflow, repos, submission, actor, stub_renderers):
    await repos.protocols.create(submission_id=submission.id, title="Old title", researchers=[])

    await make_workflow(Step2Workflow).save(submission.id, step2_request(), actor)

    protocol = await repos.protocols.get_by_submission(submission.id)
    assert submission.title == "Sleep and Study Habits (revised)"
    assert submission.co_authors == [{"name": "Ben Reyes"}]
    assert protocol.title == "Sleep and Study Habits (revised)"
    assert stub_renderers["consent_form"][0].title == "Sleep and Study Habits (revised)"


@pytest.mark.asyncio
async def test_other_decided_verification_keeps_needs_revision(
    make_workflow, repos, submission, actor, add_document
):
    await add_document(submission, "research_protocol", approved=True)

    result = await make_workflow(Step2Workflow).save(submission.id, step2_request(), actor)

    assert result.success is True
    assert result.status == "needs_revision"
    assert result.message == "Changes saved! Please address the verification issues before resubmitting."


@pytest.mark.asyncio
async def test_step2_never_resolves_comments(make_workflow, repos, submission, actor):
    comment = await repos.comments.create(
        submission_id=submission.id, user_id="staff-1", comment_text="Fix title", comment_type="revision_request"
    )

    await make_workflow(Step2Workflow).save(submission.id, step2_request(), actor)

    assert comment.is_resolved is False


@pytest.mark.asyncio
async def test_removing_technical_review_deletes_row_without_insert(
    make_workflow, repos, storage, submission, actor, add_document
):
    await add_document(submission, "technical_review", file_url=f"submissions/{submission.id}/technical_review.pdf")

    result = await make_workflow(Step2Workflow).save(
        submission.id, step2_request(), actor, technical_review=None
    )

    assert result.success is True
    assert repos.documents.of_type(submission.id, "technical_review") == []
    assert not any("technical_review" in path for path in storage.uploads)


@pytest.mark.asyncio
async def test_no_technical_review_and_none_stored(make_workflow, repos, submission, actor):
    result = await make_workflow(Step2Workflow).save(submission.id, step2_request(), actor)

    assert result.success is True
    assert repos.documents.of_type(submission.id, "technical_review") == []


@pytest.mark.asyncio
async def test_new_technical_review_replaces_row(
    make_workflow, repos, storage, submission, actor, add_document
):
    await add_document(submission, "technical_review", file_url=f"submissions/{submission.id}/technical_review.pdf")
    upload = NewFile(content=b"%PDF review", file_name="Review.PDF", content_type="application/pdf")

    result = await make_workflow(Step2Workflow).save(
        submission.id, step2_request(), actor, technical_review=upload
    )

    assert result.success is True
    rows = repos.documents.of_type(submission.id, "technical_review")
    assert len(rows) == 1
    assert rows[0].file_url == f"submissions/{submission.id}/technical_review.pdf"
    assert rows[0].file_name == "Review.PDF"
    assert rows[0].file_size == len(b"%PDF review")
    assert storage.objects[f"submissions/{submission.id}/technical_review.pdf"] == b"%PDF review"


@pytest.mark.asyncio
async def test_existing_technical_review_is_kept(make_workflow, repos, submission, actor, add_document):
    kept = await add_document(submission, "technical_review")

    await make_workflow(Step2Workflow).save(
        submission.id, step2_request(), actor, technical_review=StoredPath(path=kept.file_url)
    )

    assert repos.documents.of_type(submission.id, "technical_review") == [kept]


@pytest.mark.asyncio
async def test_regeneration_failure_reports_documents_and_skips_status(
    make_workflow, repos, submission, actor, failing_renderer
):
    failing_renderer("consent_form", "consent renderer crashed")

    result = await make_workflow(Step2Workflow).save(submission.id, step2_request(), actor)

    assert result.success is False
    assert "consent renderer crashed" in result.error
    outcomes = {d.document_type: d.success for d in result.documents}
    assert outcomes == {"application_form": True, "research_protocol": True, "consent_form": False}
    # Writes before the failure stay, nothing after it happens
    assert await repos.application_forms.get_by_submission(submission.id) is not None
    assert await repos.verifications.list_for_submission(submission.id) == []
    assert submission.status == "needs_revision"


@pytest.mark.asyncio
async def test_requires_an_actor(make_workflow, repos, submission):
    result = await make_workflow(Step2Workflow).save(submission.id, step2_request(), None)

    assert result.success is False
    assert result.error == "User not authenticated"
    assert await repos.application_forms.get_by_submission(submission.id) is None


@pytest.mark.asyncio
async def test_unknown_submission(make_workflow, actor):
    result = await make_workflow(Step2Workflow).save(uuid.uuid4(), step2_request(), actor)

    assert result.success is False
    assert "not found" in result.error
