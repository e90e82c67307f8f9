"""Interfaces for external collaborators and their logging defaults."""

import logging
from typing import Protocol

from catalog_moderation.models.submission import Submission

logger = logging.getLogger("catalog_moderation")


class CatalogMaterializer(Protocol):
    """Applies an approved submission to the canonical catalog."""

    def materialize(self, submission: Submission) -> None: ...


class LoggingMaterializer:
    """Default materializer: records the approval, writes nothing."""

    def materialize(self, submission: Submission) -> None:
        logger.info(
            "Approved %s %s for %s ready for catalog update",
            submission.submission_type, submission.id, submission.subject_type,
        )
