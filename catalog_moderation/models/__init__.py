"""Models package: import all models so metadata.create_all can discover them."""

from catalog_moderation.models.submission import Submission
from catalog_moderation.models.consent_record import ConsentRecord
from catalog_moderation.models.audit_log import AuditLog
from catalog_moderation.models.permission import PermissionGrant
from catalog_moderation.models.catalog import Artwork, Artist

__all__ = [
    "Submission", "ConsentRecord", "AuditLog",
    "PermissionGrant", "Artwork", "Artist",
]
