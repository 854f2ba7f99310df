"""Step-4 consent form payload and its renderer bag."""

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.schemas.application_form import CamelModel

ConsentType = Literal["adult", "minor", "both"]
Language = Literal["english", "tagalog", "both"]

ADULT_CONSENT_SECTIONS = (
    "introduction",
    "purpose",
    "research_intervention",
    "participant_selection",
    "voluntary_participation",
    "procedures",
    "duration",
    "risks",
    "benefits",
    "reimbursements",
    "confidentiality",
    "sharing_results",
    "right_to_refuse",
    "who_to_contact",
)

MINOR_ASSENT_SECTIONS = (
    "introduction_minor",
    "purpose_minor",
    "choice_of_participants",
    "voluntariness_minor",
    "procedures_minor",
    "risks_minor",
    "benefits_minor",
    "confidentiality_minor",
    "sharing_findings",
)

_TAG = re.compile(r"<[^>]+>")


def strip_html(value: Optional[str]) -> str:
    return _TAG.sub("", value or "").replace("&nbsp;", " ").strip()


def languages_of(language: Optional[str]) -> List[str]:
    if language == "both":
        return ["english", "tagalog"]
    return [language] if language else []


class AdultConsentSections(CamelModel):
    introduction: Optional[str] = None
    purpose: Optional[str] = None
    research_intervention: Optional[str] = None
    participant_selection: Optional[str] = None
    voluntary_participation: Optional[str] = None
    procedures: Optional[str] = None
    duration: Optional[str] = None
    risks: Optional[str] = None
    benefits: Optional[str] = None
    reimbursements: Optional[str] = None
    confidentiality: Optional[str] = None
    sharing_results: Optional[str] = None
    right_to_refuse: Optional[str] = None
    who_to_contact: Optional[str] = None


class MinorAssentSections(CamelModel):
    introduction_minor: Optional[str] = None
    purpose_minor: Optional[str] = None
    choice_of_participants: Optional[str] = None
    voluntariness_minor: Optional[str] = None
    procedures_minor: Optional[str] = None
    risks_minor: Optional[str] = None
    benefits_minor: Optional[str] = None
    confidentiality_minor: Optional[str] = None
    sharing_findings: Optional[str] = None


class ConsentData(CamelModel):
    """Step-4 consent form as the wizard submits it.

    Every section of every selected language must be filled in.
    """

    consent_type: ConsentType
    adult_language: Optional[Language] = None
    minor_language: Optional[Language] = None
    informed_consent_for: Optional[str] = Field(None, alias="participantGroupIdentity")
    contact_person: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    adult_english: AdultConsentSections = Field(default_factory=AdultConsentSections)
    adult_tagalog: AdultConsentSections = Field(default_factory=AdultConsentSections)
    minor_english: MinorAssentSections = Field(default_factory=MinorAssentSections)
    minor_tagalog: MinorAssentSections = Field(default_factory=MinorAssentSections)

    @property
    def includes_adult(self) -> bool:
        return self.consent_type in ("adult", "both")

    @property
    def includes_minor(self) -> bool:
        return self.consent_type in ("minor", "both")

    @model_validator(mode="after")
    def _check_selected_languages(self) -> "ConsentData":
        missing: List[str] = []

        if self.includes_adult:
            if not self.adult_language:
                missing.append("adult_language")
            for language in languages_of(self.adult_language):
                sections = getattr(self, f"adult_{language}")
                missing.extend(
                    f"adult_{language}.{name}"
                    for name in ADULT_CONSENT_SECTIONS
                    if not strip_html(getattr(sections, name))
                )

        if self.includes_minor:
            if not self.minor_language:
                missing.append("minor_language")
            for language in languages_of(self.minor_language):
                sections = getattr(self, f"minor_{language}")
                missing.extend(
                    f"minor_{language}.{name}"
                    for name in MINOR_ASSENT_SECTIONS
                    if not strip_html(getattr(sections, name))
                )

        if missing:
            raise ValueError(f"Missing consent fields: {', '.join(missing)}")
        return self

    def adult_consent_blob(self) -> Optional[Dict[str, Any]]:
        """JSON stored in consent_forms.adult_consent, or None when not selected."""
        if not self.includes_adult:
            return None
        blob: Dict[str, Any] = {"adult_language": self.adult_language}
        for language in languages_of(self.adult_language):
            blob[language] = getattr(self, f"adult_{language}").model_dump()
        return blob

    def minor_assent_blob(self) -> Optional[Dict[str, Any]]:
        """JSON stored in consent_forms.minor_assent, or None when not selected."""
        if not self.includes_minor:
            return None
        blob: Dict[str, Any] = {"minor_language": self.minor_language}
        for language in languages_of(self.minor_language):
            blob[language] = getattr(self, f"minor_{language}").model_dump()
        return blob


class ConsentBag(BaseModel):
    """Data the consent form renderer draws."""

    title: Optional[str] = None
    consent_type: str = "adult"
    informed_consent_for: Optional[str] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None
    adult_consent: Dict[str, Any] = Field(default_factory=dict)
    minor_assent: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, consent: Any, title: Optional[str] = None) -> "ConsentBag":
        return cls(
            title=title,
            consent_type=consent.consent_type or "adult",
            informed_consent_for=consent.informed_consent_for,
            contact_person=consent.contact_person,
            contact_number=consent.contact_number,
            adult_consent=dict(consent.adult_consent or {}),
            minor_assent=dict(consent.minor_assent or {}),
        )
