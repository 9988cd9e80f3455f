"""Tests for slug derivation and uniqueness."""

import pytest

from catalogsync.platform.sync.exceptions import EntityProcessingError
from catalogsync.platform.sync.slug import SlugGenerator, extract_discriminator, slugify


def _taken(*slugs):
    taken = set(slugs)

    async def exists(slug: str) -> bool:
        return slug in taken

    return exists


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Gaming Laptops", "gaming-laptops"),
        ("  Мишки и клавиатури ", "mishki-i-klaviaturi"),
        ('Monitor 27" (IPS)', "monitor-27-ips"),
        ("Café -- Crème", "cafe-creme"),
        ("USB/HDMI adapters", "usbhdmi-adapters"),
        ("Щипка", "shtipka"),
        ("!!!", ""),
        (None, ""),
    ],
)
def test_slugify(text, expected):
    """Test slugify on Latin, Cyrillic, quoted and punctuation-only names."""
    assert slugify(text) == expected


def test_extract_discriminator_prefers_parenthesised_text():
    """Test that the last parenthesised group wins."""
    assert extract_discriminator("Mouse (wired) (wireless)") == "wireless"


def test_extract_discriminator_falls_back_to_token_with_digit():
    """Test that a token containing a digit is used when there are no parentheses."""
    assert extract_discriminator("External Disk 2TB black") == "2tb"
    assert extract_discriminator("Plain name") is None


@pytest.mark.asyncio
async def test_unique_slug_returns_base_when_free():
    """Test that a free base slug is used as is."""
    slug = await SlugGenerator().unique_slug("Laptops", _taken())

    assert slug == "laptops"


@pytest.mark.asyncio
async def test_unique_slug_tries_discriminator_before_numbers():
    """Test that a taken base gets the discriminator suffix first."""
    slug = await SlugGenerator().unique_slug(
        "Laptops", _taken("laptops"), discriminator="Asbis"
    )

    assert slug == "laptops-asbis"


@pytest.mark.asyncio
async def test_unique_slug_numeric_suffixes():
    """Test that numeric suffixes start at ``start`` once the discriminator is taken."""
    generator = SlugGenerator()

    first = await generator.unique_slug("Laptops", _taken("laptops"))
    second = await generator.unique_slug(
        "Laptops", _taken("laptops", "laptops-x"), discriminator="x", start=2
    )

    assert first == "laptops-1"
    assert second == "laptops-2"


@pytest.mark.asyncio
async def test_unique_slug_with_parent_prefix():
    """Test that hierarchical slugs are prefixed with the parent slug."""
    slug = await SlugGenerator().unique_slug("Gaming", _taken(), parent_slug="laptops")

    assert slug == "laptops-gaming"


@pytest.mark.asyncio
async def test_unique_slug_uses_fallback_for_unusable_names():
    """Test that a name without usable characters falls back."""
    slug = await SlugGenerator().unique_slug("???", _taken(), fallback="category-42")

    assert slug == "category-42"


@pytest.mark.asyncio
async def test_unique_slug_respects_max_length():
    """Test that long names are cut to the column length."""
    generator = SlugGenerator(max_length=30)

    slug = await generator.unique_slug("word " * 40, _taken())

    assert len(slug) <= 30
    assert not slug.endswith("-")


@pytest.mark.asyncio
async def test_unique_slug_gives_up_after_max_attempts():
    """Test that an exhausted slug space is a record-level mapping error."""

    async def always_taken(slug: str) -> bool:
        return True

    with pytest.raises(EntityProcessingError):
        await SlugGenerator(max_attempts=5).unique_slug("Laptops", always_taken)
