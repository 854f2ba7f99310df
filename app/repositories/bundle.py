"""All submission repositories bound to a single session."""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.document_repository import (
    DocumentVerificationRepository,
    UploadedDocumentRepository,
)
from app.repositories.form_repository import (
    ApplicationFormRepository,
    ConsentFormRepository,
    ResearchProtocolRepository,
)
from app.repositories.submission_repository import (
    SubmissionCommentRepository,
    SubmissionRepository,
)


class RepositoryBundle:
    """Repositories sharing one AsyncSession.

    A session must not be used by two coroutines at once, so concurrent
    work opens one bundle per task through a ``BundleFactory``.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.submissions = SubmissionRepository(session)
        self.comments = SubmissionCommentRepository(session)
        self.application_forms = ApplicationFormRepository(session)
        self.protocols = ResearchProtocolRepository(session)
        self.consent_forms = ConsentFormRepository(session)
        self.documents = UploadedDocumentRepository(session)
        self.verifications = DocumentVerificationRepository(session)


BundleFactory = Callable[[], AsyncContextManager[RepositoryBundle]]


@asynccontextmanager
async def open_bundle() -> AsyncIterator[RepositoryBundle]:
    """Open a fresh session and yield a bundle bound to it."""
    # Imported lazily so repositories stay importable without an engine
    from app.core.database import async_session_maker

    async with async_session_maker() as session:
        try:
            yield RepositoryBundle(session)
        finally:
            await session.close()
