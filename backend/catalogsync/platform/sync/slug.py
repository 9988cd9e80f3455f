"""Slug derivation and uniqueness.

``slugify`` turns a (possibly Cyrillic) display name into a URL segment:
quotes are removed, Bulgarian letters are transliterated, letters and digits are kept
lowercased, whitespace becomes ``-`` and everything else is dropped, then hyphen runs
are collapsed and trimmed.

``SlugGenerator.unique_slug`` finds a free slug: the bare slug, then the slug with a
discriminator, then numeric suffixes.
"""

import re
import unicodedata
from typing import Awaitable, Callable, Optional

from catalogsync.platform.sync.exceptions import EntityProcessingError

QUOTE_CHARACTERS = "\"'`´‘’“”«»„‟‛‚"

CYRILLIC_TO_LATIN = {
    "а": "a",
    "б": "b",
    "в": "v",
    "г": "g",
    "д": "d",
    "е": "e",
    "ж": "zh",
    "з": "z",
    "и": "i",
    "й": "y",
    "к": "k",
    "л": "l",
    "м": "m",
    "н": "n",
    "о": "o",
    "п": "p",
    "р": "r",
    "с": "s",
    "т": "t",
    "у": "u",
    "ф": "f",
    "х": "h",
    "ц": "ts",
    "ч": "ch",
    "ш": "sh",
    "щ": "sht",
    "ъ": "a",
    "ь": "y",
    "ю": "yu",
    "я": "ya",
}

_QUOTES = str.maketrans("", "", QUOTE_CHARACTERS)
_HYPHENS = re.compile(r"-+")
_PARENTHESIZED = re.compile(r"\(([^()]+)\)")


def transliterate(text: str) -> str:
    """Lowercase ``text``, drop quotes and replace Cyrillic letters with Latin ones."""
    lowered = text.translate(_QUOTES).lower()
    return "".join(CYRILLIC_TO_LATIN.get(char, char) for char in lowered)


def slugify(text: Optional[str]) -> str:
    """Turn ``text`` into a slug; returns ``""`` when nothing usable is left."""
    if not text:
        return ""
    transliterated = transliterate(text)
    # Fold accented Latin letters (é -> e); anything still non-ASCII is dropped below
    folded = unicodedata.normalize("NFKD", transliterated)

    chars = []
    for char in folded:
        if char.isascii() and char.isalnum():
            chars.append(char)
        elif char.isspace() or char == "-":
            chars.append("-")
    return _HYPHENS.sub("-", "".join(chars)).strip("-")


def extract_discriminator(name: Optional[str]) -> Optional[str]:
    """Short distinguishing token of a name.

    The text of the last parenthesised group wins (``"Mouse (wireless)"`` gives
    ``wireless``); otherwise the last word containing a digit (``"Disk 2TB"`` gives
    ``2tb``).
    """
    if not name:
        return None
    groups = _PARENTHESIZED.findall(name)
    if groups:
        candidate = slugify(groups[-1])
        if candidate:
            return candidate
    for token in reversed(name.split()):
        if any(char.isdigit() for char in token):
            candidate = slugify(token)
            if candidate:
                return candidate
    return None


class SlugGenerator:
    """Finds unique slugs against an ``exists`` check."""

    def __init__(self, max_attempts: int = 1000, max_length: int = 200):
        """Create the generator.

        Args:
            max_attempts: Numeric suffixes tried before giving up
            max_length: Column length the slug must fit in
        """
        self.max_attempts = max_attempts
        self.max_length = max_length

    def _fit(self, slug: str, reserve: int) -> str:
        return slug[: max(1, self.max_length - reserve)].strip("-")

    async def unique_slug(
        self,
        name: Optional[str],
        exists: Callable[[str], Awaitable[bool]],
        parent_slug: Optional[str] = None,
        discriminator: Optional[str] = None,
        start: int = 1,
        fallback: str = "item",
    ) -> str:
        """Derive a slug from ``name`` that ``exists`` reports as free.

        Args:
            name: Display name (or a source-provided slug)
            exists: Async check, True when a slug is taken by another row
            parent_slug: Prefix for hierarchical slugs
            discriminator: Tried before numeric suffixes; slugified first
            start: First numeric suffix
            fallback: Base used when ``name`` has no usable characters

        Returns:
            A free slug

        Raises:
            EntityProcessingError: No free slug within ``max_attempts`` suffixes
        """
        base = slugify(name) or slugify(fallback) or "item"
        if parent_slug:
            base = f"{parent_slug}-{base}"
        base = self._fit(base, reserve=12)

        if not await exists(base):
            return base

        suffix = slugify(discriminator) if discriminator else ""
        if suffix and not base.endswith(f"-{suffix}") and base != suffix:
            candidate = f"{self._fit(base, reserve=len(suffix) + 1)}-{suffix}"
            if not await exists(candidate):
                return candidate

        for number in range(start, start + self.max_attempts):
            candidate = f"{base}-{number}"
            if not await exists(candidate):
                return candidate

        raise EntityProcessingError(
            f"No free slug for '{name}' after {self.max_attempts} attempts (base '{base}')"
        )
