"""Versioned consent texts and their content hashes."""

import hashlib

REQUIRED_CONSENTS = (
    "age_verification",
    "cc0_licensing",
    "public_commons",
    "freedom_of_panorama",
)

CONSENT_DESCRIPTIONS = {
    "age_verification": "I confirm that I am 18 years of age or older",
    "cc0_licensing": "I dedicate my submissions to the public domain under CC0 (no rights reserved)",
    "public_commons": "I understand that my submissions will be publicly accessible and may be used by others",
    "freedom_of_panorama": "I acknowledge that I have reviewed Canadian copyright law regarding public art photography",
}

CONSENT_ERRORS = {
    "age_verification": "Age verification (18+) is required for submissions",
    "cc0_licensing": "CC0 public domain dedication consent is required",
    "public_commons": "Public commons acknowledgment is required",
    "freedom_of_panorama": "Freedom of Panorama legal guidance acknowledgment is required",
}

# Canonical text per version. Published versions must never be edited: the
# hash stored on each consent record is only meaningful against this text.
CONSENT_TEXTS = {
    "1.0.0": "\n".join(CONSENT_DESCRIPTIONS[k] for k in REQUIRED_CONSENTS),
    "2025-09-09.v2": "\n".join([
        "I confirm that I am 18 years of age or older.",
        "I dedicate my photo submissions to the public domain under CC0 1.0 Universal. "
        "This means anyone can use these photos for any purpose without attribution "
        "requirements. I understand my content may be shared with third-party platforms "
        "like OpenStreetMap and Wikimedia Commons.",
        "I understand that my submissions will be publicly accessible and may be used by others.",
        "I understand Canada's Freedom of Panorama laws and confirm that my photos are "
        "taken from publicly accessible locations where photography is permitted. I have "
        "the right to photograph and share these artworks.",
    ]),
}


def consent_text_hash(version: str) -> str:
    """SHA-256 hex digest of the canonical text for ``version``.

    Raises KeyError for unknown versions; callers translate that.
    """
    text = CONSENT_TEXTS[version]
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
