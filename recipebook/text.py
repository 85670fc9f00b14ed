import re


def slugify(text: str) -> str:
    """Return a URL-friendly slug: lowercase, words joined by single dashes."""
    if not text:
        return ""
    s = str(text).lower()
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"[^\w\-]+", "", s)
    s = re.sub(r"-{2,}", "-", s)
    return s.strip("-")
