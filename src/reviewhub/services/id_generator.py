"""Prefixed ID generation utility."""

import uuid

# Prefixes by entity, so ids are recognisable in logs and URLs
NOMINATION = "nom_"
EXTERNAL_REVIEWER = "extr_"
RESPONSE_SESSION = "rsess_"
RESPONSE = "resp_"


def generate_id(prefix: str, length: int = 16) -> str:
    """Generate a prefixed unique ID such as ``nom_a1b2c3d4e5f6a7b8``."""
    return f"{prefix}{uuid.uuid4().hex[:length]}"
