"""Step-3 research protocol payload and its renderer bag."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.application_form import CamelModel
from app.schemas.files import ResearcherSignature

# Narrative sections in document order
PROTOCOL_SECTIONS = (
    "introduction",
    "background",
    "problem_statement",
    "scope_delimitation",
    "literature_review",
    "methodology",
    "population",
    "sampling_technique",
    "research_instrument",
    "statistical_treatment",
    "ethical_consideration",
    "references",
)

SECTION_TITLES = {
    "introduction": "Introduction",
    "background": "Background of the Study",
    "problem_statement": "Statement of the Problem",
    "scope_delimitation": "Scope and Delimitation",
    "literature_review": "Review of Related Literature",
    "methodology": "Research Methodology",
    "population": "Population, Respondents and Sample Size",
    "sampling_technique": "Sampling Technique",
    "research_instrument": "Research Instrument and Validation",
    "statistical_treatment": "Statistical Treatment",
    "ethical_consideration": "Ethical Consideration",
    "references": "References",
}


def section_column(section: str) -> str:
    """research_protocols column holding a section."""
    return "research_references" if section == "references" else section


class ResearcherInput(CamelModel):
    """A researcher entry as the wizard sends it, before classification."""

    id: str
    name: str = Field(..., min_length=1)
    signature: Optional[str] = Field(None, description="Stored path or URL of an existing signature")
    signature_base64: Optional[str] = None
    signature_file_index: Optional[int] = Field(
        None, description="Index into the uploaded signature_files"
    )


class ProtocolSections(CamelModel):
    """The twelve narrative HTML fields."""

    introduction: str = ""
    background: str = ""
    problem_statement: str = ""
    scope_delimitation: str = ""
    literature_review: str = ""
    methodology: str = ""
    population: str = ""
    sampling_technique: str = ""
    research_instrument: str = ""
    statistical_treatment: str = ""
    ethical_consideration: str = ""
    references: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    def as_dict(self) -> Dict[str, str]:
        return {section: getattr(self, section) for section in PROTOCOL_SECTIONS}


class Step3Request(CamelModel):
    """Body of a Step-3 revision save (the ``payload`` form field)."""

    title: str = Field(..., min_length=1)
    sections: ProtocolSections = Field(default_factory=ProtocolSections)
    researchers: List[ResearcherInput] = Field(default_factory=list)


class ProtocolData(BaseModel):
    """Step-3 input once signatures are classified."""

    title: str
    sections: Dict[str, str]
    researchers: List[ResearcherSignature] = Field(default_factory=list)


class ProtocolResearcher(BaseModel):
    name: str
    signature: Optional[str] = Field(None, description="Signed URL or base64 image for the PDF")


class ProtocolBag(BaseModel):
    """Data the research protocol renderer draws."""

    title: Optional[str] = None
    sections: Dict[str, str] = Field(default_factory=dict)
    researchers: List[ProtocolResearcher] = Field(default_factory=list)
