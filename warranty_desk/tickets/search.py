from __future__ import annotations

import re
import unicodedata
from typing import Iterable

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_NON_DIGIT_RE = re.compile(r"\D")

TOKEN_SOURCE_FIELDS: tuple[str, ...] = (
    "customer_name",
    "customer_document",
    "customer_phone",
    "sale_number",
    "part_code",
    "part_ref",
)


def normalize_text(text: str | None) -> str:
    """Lowercase, strip diacritics and collapse everything but ``[a-z0-9]`` to spaces."""

    decomposed = unicodedata.normalize("NFD", text or "")
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _NON_ALNUM_RE.sub(" ", stripped.lower()).strip()


def only_digits(value: str | None) -> str:
    return _NON_DIGIT_RE.sub("", value or "")


def build_search_tokens(
    *,
    customer_name: str | None = None,
    customer_document: str | None = None,
    customer_phone: str | None = None,
    sale_number: str | None = None,
    part_code: str | None = None,
    part_ref: str | None = None,
) -> list[str]:
    """Token set a ticket can be found by, in first-seen order."""

    tokens: dict[str, None] = {}

    def _add(values: Iterable[str]) -> None:
        for value in values:
            if value:
                tokens.setdefault(value, None)

    _add(normalize_text(customer_name).split())
    _add(only_digits(value) for value in (customer_document, customer_phone, sale_number))
    _add(normalize_text(value) for value in (part_code, part_ref))
    return list(tokens)


def normalize_search_token(query: str | None) -> str:
    """Reduce a free-text query to the single token it is matched by."""

    normalized = normalize_text(query)
    if not normalized:
        return ""
    token = normalized.split()[0]
    return only_digits(token) or token
