"""Identifier case conversions."""

import re

_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(name: str) -> str:
    """
    Convert camelCase, PascalCase or SCREAMING_CASE to snake_case.

    Acronym runs stay together: "AccountID" -> "account_id",
    "HTTPServer" -> "http_server", "WORK_ORDER" -> "work_order".
    """
    spaced = _BOUNDARY.sub("_", name.strip())
    spaced = re.sub(r"[\s\-]+", "_", spaced)
    return re.sub(r"_+", "_", spaced).strip("_").lower()


def to_camel_case(name: str) -> str:
    """Convert any supported case to lowerCamelCase."""
    parts = [p for p in to_snake_case(name).split("_") if p]
    if not parts:
        return ""
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


def pluralize(word: str) -> str:
    """Naive English plural used for derived relationship names."""
    if not word:
        return word
    if word.endswith("y") and len(word) > 1 and word[-2].lower() not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"
