import base64

import pytest

from app.schemas.application_form import ApplicationFormBag
from app.schemas.consent import ADULT_CONSENT_SECTIONS, ConsentBag
from app.schemas.protocol import PROTOCOL_SECTIONS, ProtocolBag, ProtocolResearcher
from app.services.pdf.renderers import (
    GENERATED_DOCUMENT_TYPES,
    RENDERERS,
    html_to_text,
    latin1,
    render_application_form,
    render_consent_form,
    render_research_protocol,
)


def pdf_bytes(result) -> bytes:
    assert result.success is True, result.error
    return base64.b64decode(result.pdf_data)


def test_application_form_renders_pdf():
    bag = ApplicationFormBag(
        title="Sleep and Study Habits – A Survey",
        researcher_name="Ana Cruz",
        co_authors=[{"name": "Ben Reyes"}],
        type_of_study=["survey"],
        num_participants=60,
        document_checklist={"has_application_form": True, "other_docs_details": None},
    )

    assert pdf_bytes(render_application_form(bag)).startswith(b"%PDF")


def test_protocol_renders_every_section_and_unreadable_signature():
    bag = ProtocolBag(
        title="Sleep and Study Habits",
        sections={s: f"<p>{s} text</p><ul><li>point</li></ul>" for s in PROTOCOL_SECTIONS},
        researchers=[ProtocolResearcher(name="Ana Cruz", signature="data:image/png;base64,bm90LWFuLWltYWdl")],
    )

    assert pdf_bytes(render_research_protocol(bag)).startswith(b"%PDF")


def test_consent_form_renders_pdf():
    bag = ConsentBag(
        title="Sleep and Study Habits",
        consent_type="adult",
        contact_person="Ana Cruz",
        adult_consent={
            "adult_language": "english",
            "english": {name: "<p>Text</p>" for name in ADULT_CONSENT_SECTIONS},
        },
    )

    assert pdf_bytes(render_consent_form(bag)).startswith(b"%PDF")


def test_renderer_registry_covers_generated_documents():
    assert GENERATED_DOCUMENT_TYPES == ("application_form", "research_protocol", "consent_form")
    assert {spec.file_prefix for spec in RENDERERS.values()} == set(GENERATED_DOCUMENT_TYPES)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("<p>One</p><p>Two</p>", "One\nTwo"),
        ("<ul><li>A</li><li>B</li></ul>", "- A\n- B"),
        ("Fish &amp; chips", "Fish & chips"),
        (None, ""),
    ],
)
def test_html_to_text(raw, expected):
    assert html_to_text(raw) == expected


def test_latin1_replaces_typographic_characters():
    assert latin1("“quoted” — done…") == '"quoted" - done...'
    assert latin1("中") == "?"
