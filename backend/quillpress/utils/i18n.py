"""Language selection for API messages.

Picks the response language from the HTTP Accept-Language header,
honouring ``q`` weights, e.g. ``fr-FR,en;q=0.8`` answers in English.
"""

from __future__ import annotations

from fastapi import Request

SUPPORTED_LANGUAGES = ("zh", "en")
DEFAULT_LANGUAGE = "zh"


def parse_accept_language(header: str) -> list[str]:
    """Return the primary language subtags in *header*, most preferred first.

    Equal weights keep header order. Entries with ``q=0`` or an unreadable
    weight are dropped.
    """
    weighted: list[tuple[float, int, str]] = []
    for position, entry in enumerate(header.split(",")):
        tag, _, params = entry.partition(";")
        tag = tag.strip().lower()
        if not tag:
            continue
        quality = 1.0
        for param in params.split(";"):
            key, _, value = param.strip().partition("=")
            if key.strip() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        if quality > 0:
            weighted.append((-quality, position, tag.split("-")[0]))
    return [lang for _, _, lang in sorted(weighted)]


def get_language(request: Request) -> str:
    """Return the first supported language the client accepts.

    Falls back to 'zh' when the header is missing or names no supported
    language.
    """
    for lang in parse_accept_language(request.headers.get("accept-language", "")):
        if lang in SUPPORTED_LANGUAGES:
            return lang
    return DEFAULT_LANGUAGE
