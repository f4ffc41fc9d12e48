"""
Input validation and normalization helpers.
"""

import re
from typing import Callable, Dict, Optional

from .exceptions import ValidationError


class SlugGenerator:
    """Builds URL-safe slugs from titles with numeric-suffix collision resolution."""

    def __init__(self):
        # Anything that is not a word character, whitespace or hyphen is dropped
        self.strip_pattern = re.compile(r'[^\w\s-]')
        self.separator_pattern = re.compile(r'[\s_-]+')
        self.max_attempts = 1000

    def slugify(self, title: Optional[str]) -> str:
        """
        Converts a title into a slug.

        Args:
            title: Source title

        Returns:
            str: Lowercase slug, empty when the title has no usable characters
        """
        if not title:
            return ""

        slug = title.lower().strip()
        slug = self.strip_pattern.sub('', slug)
        slug = self.separator_pattern.sub('-', slug)
        return slug.strip('-')

    def make_unique(self, slug: str, exists: Callable[[str], bool]) -> str:
        """
        Appends -1, -2, ... until the slug is free.

        Args:
            slug: Desired slug
            exists: Predicate telling whether a slug is already taken

        Returns:
            str: A slug for which exists() is False

        Raises:
            ValidationError: If no free slug is found
        """
        if not exists(slug):
            return slug

        for counter in range(1, self.max_attempts + 1):
            candidate = f"{slug}-{counter}"
            if not exists(candidate):
                return candidate

        raise ValidationError(f"Could not find a free slug for '{slug}'")


class EmailValidator:
    """Pragmatic e-mail address check: one @, no spaces, dotted domain."""

    def __init__(self):
        self.pattern = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

    def validate(self, email: Optional[str]) -> bool:
        """
        Validates an e-mail address.

        Args:
            email: Address to check

        Returns:
            bool: True if the address looks valid
        """
        if not email or len(email) > 254:
            return False
        return bool(self.pattern.match(email))


def normalize_name(name: Optional[str]) -> str:
    """Trims, collapses inner whitespace and casefolds a person's name."""
    if not name:
        return ""
    return " ".join(name.split()).casefold()


def normalize_email(email: Optional[str]) -> str:
    if not email:
        return ""
    return email.strip().lower()


def resolve_pricing(price: Optional[int], online_price: Optional[int],
                    offline_price: Optional[int], delivery_mode: Optional[str]) -> Dict:
    """
    Resolves training program pricing from either the split or the legacy fields.

    When online or offline price is given, the missing one defaults to 0, the
    delivery mode defaults to "both" and the legacy price mirrors the online
    price. A legacy price alone applies to both modes.

    Args:
        price: Legacy single price
        online_price: Online price
        offline_price: Offline price
        delivery_mode: online / offline / both

    Returns:
        Dict: price, online_price, offline_price, delivery_mode

    Raises:
        ValidationError: If no price is given
    """
    if online_price or offline_price:
        online = online_price or 0
        return {
            "price": online,
            "online_price": online,
            "offline_price": offline_price or 0,
            "delivery_mode": delivery_mode or "both",
        }

    if price:
        return {
            "price": price,
            "online_price": price,
            "offline_price": price,
            "delivery_mode": "both",
        }

    raise ValidationError("Either price or online_price/offline_price is required.")
