"""Slug generation for registered items."""
import re
import secrets
import string

DEFAULT_SLUG_TOKEN = "item"
SUFFIX_LENGTH = 8
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
MAX_SLUG_LENGTH = 255
MAX_BASE_LENGTH = MAX_SLUG_LENGTH - SUFFIX_LENGTH - 1

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_title(title: str) -> str:
    """Lower-case the title and collapse non-alphanumeric runs to '-'."""
    base = _NON_ALNUM.sub("-", (title or "").lower().strip())
    return base.strip("-")


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def slugify(title: str) -> str:
    """
    Build a URL-safe slug from a human-entered title.

    The normalized title (or DEFAULT_SLUG_TOKEN when nothing survives
    normalization) is cut to MAX_BASE_LENGTH and suffixed with 8 random
    lowercase alphanumerics, so no uniqueness lookup against the database
    is needed.

    >>> slugify("My Talk")  # doctest: +SKIP
    'my-talk-k3j9x0qa'
    """
    base = normalize_title(title)[:MAX_BASE_LENGTH].rstrip("-") or DEFAULT_SLUG_TOKEN
    return f"{base}-{random_suffix()}"
