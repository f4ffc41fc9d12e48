"""
Generator of external participant and certificate identifiers.
"""

import random
from datetime import date
from typing import Optional, Set

from .exceptions import GenerationError

PARTICIPANT_PREFIX = "BHM"
CERTIFICATE_PREFIX = "CERT"


class ExternalIDGenerator:
    """Generates unique IDs of the form PREFIX + YYYY + MM + NNNN."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self.max_attempts = 1000

    def generate(self, on: Optional[date] = None, existing_ids: Set[str] = None) -> str:
        """
        Generates a unique ID.

        Format: PREFIXYYYYMMNNNN, where YYYYMM is the issue month and NNNN
        a random number from 1000 to 9999.

        Args:
            on: Date the ID is issued for (today by default)
            existing_ids: IDs already in use

        Returns:
            str: Unique ID

        Raises:
            GenerationError: If no free ID is found
        """
        if existing_ids is None:
            existing_ids = set()
        if on is None:
            on = date.today()

        month_prefix = f"{self.prefix}{on.year:04d}{on.month:02d}"

        for attempt in range(self.max_attempts):
            candidate = f"{month_prefix}{random.randint(1000, 9999)}"
            if candidate not in existing_ids:
                return candidate

        raise GenerationError(
            f"Could not generate a unique {self.prefix} ID in {self.max_attempts} attempts"
        )


def participant_id_generator() -> ExternalIDGenerator:
    return ExternalIDGenerator(PARTICIPANT_PREFIX)


def certificate_id_generator() -> ExternalIDGenerator:
    return ExternalIDGenerator(CERTIFICATE_PREFIX)
