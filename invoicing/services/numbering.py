# invoicing/services/numbering.py
from __future__ import annotations

import logging
import random
from datetime import date

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "FACT"
QUOTE_PREFIX = "DEVIS"

_rng = random.SystemRandom()


def generate_reference(prefix: str, organization_id: str, issued_on: date, rng: random.Random | None = None) -> str:
    """
    Human-readable document reference.

    Example: FACT-3f9a2c-202610-047
      prefix / first 6 chars of the organization id / year+month / 3-digit random

    Not guaranteed unique: callers check the organization's existing numbers
    and draw again on a clash. The (organization_id, number) unique
    constraint is the last line of defence against a concurrent insert.
    """
    suffix = (rng or _rng).randrange(1000)
    short_org = str(organization_id)[:6]
    reference = f"{prefix}-{short_org}-{issued_on.year}{issued_on.month:02d}-{suffix:03d}"
    logger.debug("Generated reference %s for organization %s", reference, organization_id)
    return reference
