"""SQLAlchemy models for the submission tables."""

import uuid
from datetime import datetime

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Submission(Base):
    """Top-level research-ethics application owned by one researcher."""

    __tablename__ = "research_submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | needs_revision | pending_review | awaiting_classification | approved
    co_authors: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    # Relationships
    application_form: Mapped["ApplicationForm | None"] = relationship(
        "ApplicationForm", back_populates="submission", uselist=False, cascade="all, delete-orphan"
    )
    research_protocol: Mapped["ResearchProtocol | None"] = relationship(
        "ResearchProtocol", back_populates="submission", uselist=False, cascade="all, delete-orphan"
    )
    consent_form: Mapped["ConsentForm | None"] = relationship(
        "ConsentForm", back_populates="submission", uselist=False, cascade="all, delete-orphan"
    )
    documents: Mapped[list["UploadedDocument"]] = relationship(
        "UploadedDocument", back_populates="submission", cascade="all, delete-orphan"
    )
    comments: Mapped[list["SubmissionComment"]] = relationship(
        "SubmissionComment", back_populates="submission", cascade="all, delete-orphan"
    )


class ApplicationForm(Base):
    """Step-2 application form, one per submission."""

    __tablename__ = "application_forms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("research_submissions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    study_site: Mapped[str | None] = mapped_column(String, nullable=True)
    researcher_first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    researcher_middle_name: Mapped[str | None] = mapped_column(String, nullable=True)
    researcher_last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_info: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    co_researcher: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    technical_advisers: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    college: Mapped[str | None] = mapped_column(String, nullable=True)
    institution: Mapped[str | None] = mapped_column(String, nullable=True)
    institution_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    type_of_study: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    type_of_study_others: Mapped[str | None] = mapped_column(String, nullable=True)
    study_site_type: Mapped[str | None] = mapped_column(String, nullable=True)
    source_of_funding: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    pharmaceutical_sponsor: Mapped[str | None] = mapped_column(String, nullable=True)
    funding_others: Mapped[str | None] = mapped_column(String, nullable=True)
    study_duration: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    num_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    technical_review: Mapped[str | None] = mapped_column(String, nullable=True)
    submitted_to_other: Mapped[str | None] = mapped_column(String, nullable=True)
    document_checklist: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    submission: Mapped["Submission"] = relationship("Submission", back_populates="application_form")


class ResearchProtocol(Base):
    """Step-3 research protocol: twelve narrative sections plus researcher signatures."""

    __tablename__ = "research_protocols"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("research_submissions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    introduction: Mapped[str | None] = mapped_column(Text, nullable=True)
    background: Mapped[str | None] = mapped_column(Text, nullable=True)
    problem_statement: Mapped[str | None] = mapped_column(Text, nullable=True)
    scope_delimitation: Mapped[str | None] = mapped_column(Text, nullable=True)
    literature_review: Mapped[str | None] = mapped_column(Text, nullable=True)
    methodology: Mapped[str | None] = mapped_column(Text, nullable=True)
    population: Mapped[str | None] = mapped_column(Text, nullable=True)
    sampling_technique: Mapped[str | None] = mapped_column(Text, nullable=True)
    research_instrument: Mapped[str | None] = mapped_column(Text, nullable=True)
    statistical_treatment: Mapped[str | None] = mapped_column(Text, nullable=True)
    ethical_consideration: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "references" is reserved in SQL
    research_references: Mapped[str | None] = mapped_column(Text, nullable=True)
    researchers: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    submission: Mapped["Submission"] = relationship("Submission", back_populates="research_protocol")


class ConsentForm(Base):
    """Step-4 consent form holding bilingual adult consent and minor assent text."""

    __tablename__ = "consent_forms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("research_submissions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    consent_type: Mapped[str] = mapped_column(String, nullable=False, default="adult")  # adult | minor | both
    informed_consent_for: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String, nullable=True)
    adult_consent: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    minor_assent: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    submission: Mapped["Submission"] = relationship("Submission", back_populates="consent_form")


class UploadedDocument(Base):
    """A stored file for one document type of a submission.

    ``file_url`` is the object key inside the storage bucket, not a URL.
    """

    __tablename__ = "uploaded_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("research_submissions.id", ondelete="CASCADE"), nullable=False
    )
    document_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    file_url: Mapped[str] = mapped_column(String, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revision_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )

    submission: Mapped["Submission"] = relationship("Submission", back_populates="documents")
    verification: Mapped["DocumentVerification | None"] = relationship(
        "DocumentVerification", back_populates="document", uselist=False, cascade="all, delete-orphan"
    )


class DocumentVerification(Base):
    """Reviewer judgment on one uploaded document. ``is_approved`` None means unreviewed."""

    __tablename__ = "document_verifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("uploaded_documents.id", ondelete="CASCADE"), nullable=True
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("research_submissions.id", ondelete="CASCADE"), nullable=False
    )
    is_approved: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    feedback_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String, nullable=True)

    document: Mapped["UploadedDocument | None"] = relationship(
        "UploadedDocument", back_populates="verification"
    )


class SubmissionComment(Base):
    """Reviewer or staff comment on a submission, resolved in bulk."""

    __tablename__ = "submission_comments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("research_submissions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    comment_text: Mapped[str] = mapped_column(Text, nullable=False)
    comment_type: Mapped[str | None] = mapped_column(String, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    submission: Mapped["Submission"] = relationship("Submission", back_populates="comments")
