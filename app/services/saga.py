"""Compensating actions for workflows that span the database and storage.

No transaction covers a whole workflow. A ``CompensationLog`` lets a
workflow undo the storage side effects it made before failing.
"""

from typing import Awaitable, Callable, List, Tuple

from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

Compensation = Callable[[], Awaitable[object]]


class CompensationLog:
    """Ordered list of (description, compensation) pairs."""

    def __init__(self):
        self._entries: List[Tuple[str, Compensation]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, description: str, compensation: Compensation) -> None:
        self._entries.append((description, compensation))

    def remove_uploaded(self, storage, path: str) -> None:
        """Record that ``path`` was uploaded and should be removed on failure."""
        self.record(f"remove {path}", lambda: storage.remove_files([path]))

    def clear(self) -> None:
        """Forget every entry once the workflow has committed to its result."""
        self._entries.clear()

    async def compensate(self) -> int:
        """Run compensations newest first. A failing compensation does not stop the rest.

        Returns:
            Number of compensations that succeeded
        """
        done = 0
        while self._entries:
            description, compensation = self._entries.pop()
            try:
                await compensation()
                done += 1
                LOGGER.info(f"Compensated: {description}")
            except Exception as e:
                LOGGER.warning(
                    f"Compensation failed: {description}: {str(e)}",
                    exc_info=True,
                    extra={"compensation": description}
                )
        return done
