"""Step-2 application form payload and its renderer bag."""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_participant_count(value: Any) -> int:
    """Read a participant count the way the wizard sends it; unparseable means 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def _as_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


class CamelModel(BaseModel):
    """Accepts both camelCase (wizard) and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentChecklist(CamelModel):
    has_application_form: bool = False
    has_research_protocol: bool = False
    has_informed_consent: bool = False
    has_informed_consent_others: bool = False
    informed_consent_others: Optional[str] = None
    has_assent_form: bool = False
    has_assent_form_others: bool = False
    assent_form_others: Optional[str] = None
    has_endorsement_letter: bool = False
    has_questionnaire: bool = False
    has_technical_review: bool = False
    has_data_collection_forms: bool = False
    has_product_brochure: bool = False
    has_fda_authorization: bool = Field(False, alias="hasFDAAuthorization")
    has_company_permit: bool = False
    has_special_population_permit: bool = False
    special_population_permit_details: Optional[str] = None
    has_other_docs: bool = False
    other_docs_details: Optional[str] = None


class ApplicationFormData(CamelModel):
    """Flat application form fields as the wizard submits them."""

    title: str = Field(..., min_length=1)
    study_site: Optional[str] = None
    researcher_first_name: Optional[str] = None
    researcher_middle_name: Optional[str] = None
    researcher_last_name: Optional[str] = None
    project_leader_email: Optional[str] = None
    project_leader_contact: Optional[str] = None
    tel_no: Optional[str] = None
    fax_no: Optional[str] = None
    college: Optional[str] = None
    institution: Optional[str] = None
    institution_address: Optional[str] = None
    type_of_study: List[str] = Field(default_factory=list)
    type_of_study_others: Optional[str] = None
    study_site_type: Optional[str] = None
    source_of_funding: List[str] = Field(default_factory=list)
    pharmaceutical_sponsor: Optional[str] = None
    funding_others: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    num_participants: int = 0
    technical_review: Optional[str] = None  # "yes" | "no"
    submitted_to_other: Optional[str] = None  # "yes" | "no"
    document_checklist: DocumentChecklist = Field(default_factory=DocumentChecklist)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("num_participants", mode="before")
    @classmethod
    def _parse_count(cls, value: Any) -> int:
        return parse_participant_count(value)

    @field_validator("type_of_study", "source_of_funding", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> List[str]:
        return _as_list(value)

    def to_columns(
        self,
        co_researchers: List[Dict[str, Any]],
        technical_advisers: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Map the flat fields onto application_forms columns."""
        checklist = self.document_checklist
        return {
            "study_site": self.study_site,
            "researcher_first_name": self.researcher_first_name,
            "researcher_middle_name": self.researcher_middle_name,
            "researcher_last_name": self.researcher_last_name,
            "contact_info": {
                "email": self.project_leader_email,
                "mobile_no": self.project_leader_contact,
                "tel_no": self.tel_no,
                "fax_no": self.fax_no,
            },
            "co_researcher": co_researchers,
            "technical_advisers": technical_advisers,
            "college": self.college,
            "institution": self.institution,
            "institution_address": self.institution_address,
            "type_of_study": self.type_of_study,
            "type_of_study_others": self.type_of_study_others,
            "study_site_type": self.study_site_type,
            "source_of_funding": self.source_of_funding,
            "pharmaceutical_sponsor": self.pharmaceutical_sponsor,
            "funding_others": self.funding_others,
            "study_duration": {
                "start_date": self.start_date,
                "end_date": self.end_date,
            },
            "num_participants": self.num_participants,
            "technical_review": self.technical_review,
            "submitted_to_other": self.submitted_to_other,
            # An unticked application form means the checklist was never filled in
            "document_checklist": (
                checklist.model_dump() if checklist.has_application_form else {}
            ),
        }


class Step2Request(CamelModel):
    """Body of a Step-2 revision save (the ``payload`` form field)."""

    form: ApplicationFormData
    co_researchers: List[Dict[str, Any]] = Field(default_factory=list)
    technical_advisers: List[Dict[str, Any]] = Field(default_factory=list)
    existing_technical_review: Optional[str] = Field(
        None, description="Storage path of a technical review that is kept as is"
    )


def _yes_no(value: Optional[str]) -> str:
    return "Yes" if (value or "").lower() == "yes" else "No"


class ApplicationFormBag(BaseModel):
    """Data the application form renderer draws."""

    title: Optional[str] = None
    researcher_name: str = ""
    email: Optional[str] = None
    contact_number: Optional[str] = None
    co_authors: List[Dict[str, Any]] = Field(default_factory=list)
    technical_advisers: List[Dict[str, Any]] = Field(default_factory=list)
    college: Optional[str] = None
    institution: Optional[str] = None
    institution_address: Optional[str] = None
    study_site: Optional[str] = None
    study_site_type: Optional[str] = None
    type_of_study: List[str] = Field(default_factory=list)
    type_of_study_others: Optional[str] = None
    source_of_funding: List[str] = Field(default_factory=list)
    pharmaceutical_sponsor: Optional[str] = None
    funding_others: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    num_participants: int = 0
    technical_review: str = "No"
    submitted_to_other: str = "No"
    document_checklist: Dict[str, Union[bool, str, None]] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, form: Any, title: Optional[str] = None,
                 co_authors: Optional[List[Dict[str, Any]]] = None) -> "ApplicationFormBag":
        """Build the bag from an application_forms row."""
        contact = form.contact_info or {}
        duration = form.study_duration or {}
        names = [form.researcher_first_name, form.researcher_middle_name, form.researcher_last_name]
        return cls(
            title=title,
            researcher_name=" ".join(n for n in names if n),
            email=contact.get("email"),
            contact_number=contact.get("mobile_no"),
            co_authors=co_authors if co_authors is not None else list(form.co_researcher or []),
            technical_advisers=list(form.technical_advisers or []),
            college=form.college,
            institution=form.institution,
            institution_address=form.institution_address,
            study_site=form.study_site,
            study_site_type=form.study_site_type,
            type_of_study=_as_list(form.type_of_study),
            type_of_study_others=form.type_of_study_others,
            source_of_funding=_as_list(form.source_of_funding),
            pharmaceutical_sponsor=form.pharmaceutical_sponsor,
            funding_others=form.funding_others,
            start_date=duration.get("start_date"),
            end_date=duration.get("end_date"),
            num_participants=form.num_participants or 0,
            technical_review=_yes_no(form.technical_review),
            submitted_to_other=_yes_no(form.submitted_to_other),
            document_checklist=dict(form.document_checklist or {}),
        )
