import re
import unicodedata

MAX_SLUG_LENGTH = 60


def slugify_shop_name(text: str) -> str:
    """Convert a shop name to a URL-friendly slug; may return an empty string"""
    if not text:
        return ""

    # Drop accents so "Panaderia Nino" and "Panadería Niño" share a slug
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9\s-]", "", normalized.lower().strip())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")[:MAX_SLUG_LENGTH].strip("-")


def slug_candidate(base: str, attempt: int) -> str:
    """attempt 0 -> base, 1 -> base-2, 2 -> base-3, ..."""
    if attempt == 0:
        return base
    return f"{base}-{attempt + 1}"
