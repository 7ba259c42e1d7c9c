"""Display-time PHI redaction.

Masking happens only when a response is rendered. Stored records, search,
filtering and sorting always see the real values.
"""

from typing import Optional

REDACTION_TOKEN = "•••"


def mask(enabled: bool, value: Optional[str], token: str = REDACTION_TOKEN) -> Optional[str]:
    """Return ``token`` in place of ``value`` when masking is enabled."""
    if not enabled:
        return value
    return token
