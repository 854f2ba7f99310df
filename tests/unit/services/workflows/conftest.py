import pytest

from app.services.regeneration_service import RegenerationService


@pytest.fixture
def regeneration(storage, bundle_factory, clock):
    return RegenerationService(storage=storage, bundle_factory=bundle_factory, clock=clock)


@pytest.fixture
def make_workflow(repos, storage, regeneration, clock, stub_renderers):
    """Build a workflow wired to the in-memory repositories, bucket and renderers."""

    def build(workflow_class):
        return workflow_class(repos, storage=storage, regeneration=regeneration, clock=clock)

    return build


@pytest.fixture
def add_document(repos):
    async def add(submission, document_type, file_url=None, approved="unset", feedback=None, **fields):
        document = await repos.documents.create(
            submission_id=submission.id,
            document_type=document_type,
            file_name=f"{document_type}.pdf",
            file_url=file_url or f"user-123/{document_type}_old.pdf",
            file_size=100,
            **fields,
        )
        if approved != "unset":
            await repos.verifications.create(
                document_id=document.id,
                submission_id=submission.id,
                is_approved=approved,
                feedback_comment=feedback,
            )
        return document

    return add
