import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.api.v1.dependencies import get_regeneration_service, get_repositories, get_storage_service
from app.api.v1.endpoints.documents import get_quick_revision_workflow, get_title_workflow
from app.core.auth import get_current_user
from app.main import app
from app.schemas.auth import CurrentUser
from app.schemas.common import WorkflowResult
from app.schemas.files import NewFile
from app.services.regeneration_service import RegenerationService


@pytest.fixture
def authenticated():
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(
        id="user-123", email="researcher@example.com"
    )


@pytest.fixture
def backend(repos, storage, bundle_factory, clock):
    regeneration = RegenerationService(storage=storage, bundle_factory=bundle_factory, clock=clock)
    app.dependency_overrides[get_repositories] = lambda: repos
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_regeneration_service] = lambda: regeneration
    return regeneration


def test_regenerate_document(test_client, authenticated, backend, repos, storage, submission, stub_renderers):
    response = test_client.post(
        f"/api/v1/submissions/{submission.id}/documents/consent_form/regenerate"
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] is True
    path = body["data"]["pdf_path"]
    assert path.startswith("user-123/")
    assert path in storage.objects
    assert stub_renderers["consent_form"][0].title == "Sleep and Study Habits"
    assert [r.file_url for r in repos.documents.of_type(submission.id, "consent_form")] == [path]


def test_regenerate_unknown_type_is_422(test_client, authenticated, backend, submission):
    response = test_client.post(
        f"/api/v1/submissions/{submission.id}/documents/endorsement_letter/regenerate"
    )

    assert response.status_code == 422
    assert response.json()["detail"]["title"] == "Unknown Document Type"


def test_regenerate_missing_submission_is_404(test_client, authenticated, backend):
    response = test_client.post(
        f"/api/v1/submissions/{uuid.uuid4()}/documents/consent_form/regenerate"
    )

    assert response.status_code == 404


def test_regenerate_failure_is_reported(test_client, authenticated, backend, storage, submission, failing_renderer):
    failing_renderer("consent_form", "font missing")

    response = test_client.post(
        f"/api/v1/submissions/{submission.id}/documents/consent_form/regenerate"
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] is False
    assert "font missing" in body["message"]
    assert storage.objects == {}


def test_replace_document_passes_type_and_file(test_client, authenticated):
    workflow = MagicMock()
    workflow.save = AsyncMock(return_value=WorkflowResult(
        success=True, message="Document replaced successfully!", status="pending"
    ))
    app.dependency_overrides[get_quick_revision_workflow] = lambda: workflow
    submission_id = uuid.uuid4()

    response = test_client.post(
        f"/api/v1/submissions/{submission_id}/documents/endorsement_letter/replace",
        files={"file": ("letter.pdf", b"%PDF letter", "application/pdf")},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Document replaced successfully!"
    args, kwargs = workflow.save.call_args
    assert args[0] == submission_id
    assert isinstance(args[1], NewFile)
    assert args[1].file_name == "letter.pdf"
    assert kwargs == {"document_type": "endorsement_letter"}


def test_replace_without_token_is_401(test_client):
    response = test_client.post(
        f"/api/v1/submissions/{uuid.uuid4()}/documents/endorsement_letter/replace",
        files={"file": ("letter.pdf", b"%PDF letter", "application/pdf")},
    )

    assert response.status_code == 401


def test_update_title(test_client, authenticated):
    workflow = MagicMock()
    workflow.update_submission_title = AsyncMock(return_value=WorkflowResult(
        success=True, message="Title updated successfully!", status="needs_revision"
    ))
    app.dependency_overrides[get_title_workflow] = lambda: workflow
    submission_id = uuid.uuid4()

    response = test_client.put(
        f"/api/v1/submissions/{submission_id}/title", json={"title": "Sleep Habits of Nurses"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "needs_revision"
    args = workflow.update_submission_title.call_args.args
    assert args[0] == submission_id
    assert args[1] == "Sleep Habits of Nurses"


def test_empty_title_is_422(test_client, authenticated):
    app.dependency_overrides[get_title_workflow] = lambda: MagicMock()

    response = test_client.put(f"/api/v1/submissions/{uuid.uuid4()}/title", json={"title": ""})

    assert response.status_code == 422
