"""PDF renderers for the generated submission documents, built on fpdf2.

Each renderer maps one typed data bag to a ``RenderResult`` envelope and
never raises: any failure comes back as ``success=False``.
"""

import base64
import html
import re
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Dict, Iterable, Optional, Type

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from pydantic import BaseModel

from app.schemas.application_form import ApplicationFormBag
from app.schemas.common import RenderResult
from app.schemas.consent import (
    ADULT_CONSENT_SECTIONS,
    MINOR_ASSENT_SECTIONS,
    ConsentBag,
    languages_of,
)
from app.schemas.protocol import PROTOCOL_SECTIONS, SECTION_TITLES, ProtocolBag
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

NAVY = (0, 51, 102)
GREY = (85, 85, 85)
BLACK = (0, 0, 0)

_BLOCK_END = re.compile(r"</(p|div|h[1-6]|li|tr)>|<br\s*/?>", re.IGNORECASE)
_LIST_ITEM = re.compile(r"<li[^>]*>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_BLANK_LINES = re.compile(r"\n{3,}")

# Core fonts only cover latin-1
_REPLACEMENTS = {
    "\u2018": "'", "\u2019": "'", "\u201c": '"', "\u201d": '"',
    "\u2013": "-", "\u2014": "-", "\u2026": "...", "\u2022": "-", "\u00a0": " ",
}


def latin1(text: Any) -> str:
    text = "" if text is None else str(text)
    for src, dst in _REPLACEMENTS.items():
        text = text.replace(src, dst)
    return text.encode("latin-1", "replace").decode("latin-1")


def html_to_text(value: Optional[str]) -> str:
    """Flatten rich-text HTML into paragraphs of plain text."""
    if not value:
        return ""
    text = _LIST_ITEM.sub("- ", value)
    text = _BLOCK_END.sub("\n", text)
    text = _TAG.sub("", text)
    text = html.unescape(text)
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def _humanize(name: str) -> str:
    return name.replace("_", " ").strip().capitalize()


class PortalPDF(FPDF):
    """A4 portrait document with the ethics committee header and page numbers."""

    def __init__(self, document_title: str, submission_title: Optional[str]):
        super().__init__(orientation="portrait", unit="mm", format="A4")
        self.document_title = document_title
        self.submission_title = submission_title or "Untitled submission"
        self.set_auto_page_break(auto=True, margin=18)
        self.set_title(latin1(f"{document_title} - {self.submission_title}"))

    def header(self):
        self.set_font("helvetica", "B", 9)
        self.set_text_color(*GREY)
        self.cell(0, 6, latin1("Research Ethics Committee"), align="L",
                  new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(2)

    def footer(self):
        self.set_y(-14)
        self.set_font("helvetica", "I", 8)
        self.set_text_color(*GREY)
        self.cell(0, 8, f"Page {self.page_no()}/{{nb}}", align="C")

    def cover(self, subtitle: Optional[str] = None):
        self.add_page()
        self.set_font("helvetica", "B", 18)
        self.set_text_color(*NAVY)
        self.multi_cell(0, 10, latin1(self.document_title.upper()), align="C",
                        new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(2)
        self.set_font("helvetica", "B", 13)
        self.set_text_color(*BLACK)
        self.multi_cell(0, 8, latin1(self.submission_title), align="C",
                        new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        if subtitle:
            self.set_font("helvetica", "", 10)
            self.set_text_color(*GREY)
            self.multi_cell(0, 6, latin1(subtitle), align="C",
                            new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("helvetica", "", 9)
        self.set_text_color(*GREY)
        self.cell(0, 6, f"Generated {datetime.now().strftime('%B %d, %Y')}", align="C",
                  new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(6)

    def heading(self, text: str):
        self.ln(2)
        self.set_font("helvetica", "B", 12)
        self.set_text_color(*NAVY)
        self.multi_cell(0, 7, latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.ln(2)
        self.set_text_color(*BLACK)

    def field(self, label: str, value: Any):
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value if v) or "N/A"
        elif value is None or value == "":
            value = "N/A"
        self.set_font("helvetica", "B", 10)
        self.cell(55, 6, latin1(label))
        self.set_font("helvetica", "", 10)
        self.multi_cell(0, 6, latin1(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def paragraph(self, text: str):
        self.set_font("helvetica", "", 10)
        self.set_text_color(*BLACK)
        self.multi_cell(0, 5.5, latin1(text or "N/A"), align="J",
                        new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(1)

    def signature(self, name: str, image: Optional[str]):
        self.ln(4)
        drawn = False
        if image:
            try:
                if image.startswith("data:") or not image.startswith("http"):
                    payload = image.split("base64,", 1)[-1]
                    self.image(BytesIO(base64.b64decode(payload)), w=40)
                else:
                    self.image(image, w=40)
                drawn = True
            except Exception as e:
                LOGGER.warning(f"Could not draw signature for {name}: {str(e)}")
        if not drawn:
            self.ln(10)
        self.line(self.l_margin, self.get_y(), self.l_margin + 70, self.get_y())
        self.set_font("helvetica", "", 9)
        self.cell(0, 6, latin1(name), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _finish(pdf: PortalPDF) -> RenderResult:
    data = bytes(pdf.output())
    return RenderResult(success=True, pdf_data=base64.b64encode(data).decode("ascii"))


def _people(entries: Iterable[Dict[str, Any]]) -> list:
    return [e.get("name") or e.get("fullName") or "" for e in entries if isinstance(e, dict)]


def render_application_form(bag: ApplicationFormBag) -> RenderResult:
    """Render the application form."""
    try:
        pdf = PortalPDF("Application Form", bag.title)
        pdf.cover()

        pdf.heading("General Information")
        pdf.field("Project leader", bag.researcher_name)
        pdf.field("Email", bag.email)
        pdf.field("Contact number", bag.contact_number)
        pdf.field("Co-researchers", _people(bag.co_authors))
        pdf.field("Technical advisers", _people(bag.technical_advisers))
        pdf.field("College", bag.college)
        pdf.field("Institution", bag.institution)
        pdf.field("Institution address", bag.institution_address)

        pdf.heading("Study Details")
        pdf.field("Study site", bag.study_site)
        pdf.field("Study site type", bag.study_site_type)
        study_types = list(bag.type_of_study)
        if bag.type_of_study_others:
            study_types.append(bag.type_of_study_others)
        pdf.field("Type of study", study_types)
        funding = list(bag.source_of_funding)
        if bag.pharmaceutical_sponsor:
            funding.append(f"Sponsor: {bag.pharmaceutical_sponsor}")
        if bag.funding_others:
            funding.append(bag.funding_others)
        pdf.field("Source of funding", funding)
        pdf.field("Study duration", f"{bag.start_date or 'N/A'} to {bag.end_date or 'N/A'}")
        pdf.field("No. of participants", bag.num_participants)
        pdf.field("Technical review", bag.technical_review)
        pdf.field("Submitted to other committee", bag.submitted_to_other)

        if bag.document_checklist:
            pdf.heading("Checklist of Documents")
            for key, value in bag.document_checklist.items():
                if isinstance(value, bool):
                    pdf.field(_humanize(key.replace("has_", "")), "Yes" if value else "No")
                elif value:
                    pdf.field(_humanize(key), value)

        return _finish(pdf)
    except Exception as e:
        LOGGER.error(f"Application form rendering failed: {str(e)}", exc_info=True)
        return RenderResult(success=False, error=f"Application form rendering failed: {str(e)}")


def render_research_protocol(bag: ProtocolBag) -> RenderResult:
    """Render the research protocol with its signatures."""
    try:
        pdf = PortalPDF("Research Protocol", bag.title)
        pdf.cover()

        for section in PROTOCOL_SECTIONS:
            pdf.heading(SECTION_TITLES[section])
            pdf.paragraph(html_to_text(bag.sections.get(section)))

        if bag.researchers:
            pdf.heading("Researchers")
            for researcher in bag.researchers:
                pdf.signature(researcher.name, researcher.signature)

        return _finish(pdf)
    except Exception as e:
        LOGGER.error(f"Research protocol rendering failed: {str(e)}", exc_info=True)
        return RenderResult(success=False, error=f"Research protocol rendering failed: {str(e)}")


def _consent_part(pdf: PortalPDF, heading: str, blob: Dict[str, Any],
                  language_key: str, sections: Iterable[str]) -> None:
    for language in languages_of(blob.get(language_key)):
        texts = blob.get(language) or {}
        pdf.heading(f"{heading} ({language.capitalize()})")
        for name in sections:
            pdf.set_font("helvetica", "B", 10)
            pdf.multi_cell(0, 6, latin1(_humanize(name.replace("_minor", ""))),
                           new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.paragraph(html_to_text(texts.get(name)))


def render_consent_form(bag: ConsentBag) -> RenderResult:
    """Render the informed consent and/or assent form."""
    try:
        pdf = PortalPDF("Informed Consent Form", bag.title)
        pdf.cover(subtitle=f"Consent type: {bag.consent_type}")

        pdf.heading("Contact")
        pdf.field("Informed consent for", bag.informed_consent_for)
        pdf.field("Contact person", bag.contact_person)
        pdf.field("Contact number", bag.contact_number)

        if bag.consent_type in ("adult", "both"):
            _consent_part(pdf, "Informed Consent", bag.adult_consent,
                          "adult_language", ADULT_CONSENT_SECTIONS)
        if bag.consent_type in ("minor", "both"):
            _consent_part(pdf, "Assent Form", bag.minor_assent,
                          "minor_language", MINOR_ASSENT_SECTIONS)

        return _finish(pdf)
    except Exception as e:
        LOGGER.error(f"Consent form rendering failed: {str(e)}", exc_info=True)
        return RenderResult(success=False, error=f"Consent form rendering failed: {str(e)}")


Renderer = Callable[[BaseModel], RenderResult]


@dataclass(frozen=True)
class RendererSpec:
    """How one generated document type is rendered and named."""

    render: Renderer
    file_prefix: str
    bag_type: Type[BaseModel]


RENDERERS: Dict[str, RendererSpec] = {
    "application_form": RendererSpec(render_application_form, "application_form", ApplicationFormBag),
    "research_protocol": RendererSpec(render_research_protocol, "research_protocol", ProtocolBag),
    "consent_form": RendererSpec(render_consent_form, "consent_form", ConsentBag),
}

GENERATED_DOCUMENT_TYPES = tuple(RENDERERS)
