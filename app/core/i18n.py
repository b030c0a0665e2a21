"""Message localization backed by per-language JSON catalogs.

Catalogs live in ``app/i18n/<lang>.json`` and map a message key (the same
key used as an error ``code``) to a template. Templates use ``str.format``
placeholders, e.g. ``"The {field} field is required"``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Mapping

from fastapi import Request

from app.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)

CATALOG_DIR = Path(__file__).resolve().parents[1] / "i18n"


def parse_language_list(languages: str | None) -> list[str]:
    """Parse a comma-separated language list, keeping order and dropping duplicates.

    Examples:
        >>> parse_language_list("en, vi ,en")
        ['en', 'vi']
        >>> parse_language_list(None)
        []
    """
    if not languages:
        return []

    parsed: list[str] = []
    for lang in languages.split(","):
        lang = lang.strip().lower()
        if lang and lang not in parsed:
            parsed.append(lang)
    return parsed


class Localizer:
    """Resolve message keys to display strings for a language tag."""

    def __init__(
        self,
        catalogs: Mapping[str, Mapping[str, str]],
        *,
        default_language: str = "en",
    ) -> None:
        self._catalogs = {lang.lower(): dict(messages) for lang, messages in catalogs.items()}
        self.default_language = default_language.lower()

    @classmethod
    def from_directory(
        cls,
        directory: Path,
        languages: Iterable[str],
        *,
        default_language: str = "en",
    ) -> "Localizer":
        """Load one ``<lang>.json`` catalog per language.

        Raises:
            ConfigurationAppError: If a catalog is missing or is not a JSON
                object of strings.
        """
        catalogs: dict[str, dict[str, str]] = {}
        for lang in languages:
            path = Path(directory) / f"{lang}.json"
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise ConfigurationAppError(
                    code="catalog_not_found",
                    message=f"Message catalog for '{lang}' not found",
                    details={"language": lang, "path": str(path)},
                ) from exc
            except json.JSONDecodeError as exc:
                raise ConfigurationAppError(
                    code="catalog_invalid",
                    message=f"Message catalog for '{lang}' is not valid JSON",
                    details={"language": lang, "path": str(path)},
                ) from exc

            if not isinstance(data, dict) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in data.items()
            ):
                raise ConfigurationAppError(
                    code="catalog_invalid",
                    message=f"Message catalog for '{lang}' must map strings to strings",
                    details={"language": lang, "path": str(path)},
                )
            catalogs[lang] = data

        logger.info(
            "i18n.catalogs_loaded",
            extra={"languages": sorted(catalogs), "default_language": default_language},
        )
        return cls(catalogs, default_language=default_language)

    @property
    def languages(self) -> list[str]:
        return sorted(self._catalogs)

    def supports(self, lang: str) -> bool:
        return lang.lower() in self._catalogs

    def localize(
        self,
        key: str,
        lang: str | None = None,
        values: Mapping[str, str] | None = None,
        *,
        default: str | None = None,
    ) -> str:
        """Return the display string for ``key`` in ``lang``.

        Unknown languages and keys fall back to ``default`` (or the key itself).
        A template whose placeholders are not all provided is returned as-is.
        """
        catalog = self._catalogs.get((lang or self.default_language).lower())
        template = catalog.get(key) if catalog else None
        if template is None:
            return default if default is not None else key
        if not values:
            return template
        try:
            return template.format(**values)
        except (KeyError, IndexError):
            return template


def get_current_lang(request: Request, localizer: Localizer) -> str:
    """Pick the response language from the ``Accept-Language`` header.

    Only the first entry is considered; region subtags and quality values are
    ignored (``vi-VN;q=0.9`` -> ``vi``). Unsupported or missing languages fall
    back to the localizer's default.
    """
    header = request.headers.get("accept-language", "")
    first = header.split(",", 1)[0].split(";", 1)[0].strip()
    primary = first.split("-", 1)[0].lower()
    if primary and localizer.supports(primary):
        return primary
    return localizer.default_language


def localize_request(
    request: Request,
    key: str,
    values: Mapping[str, str] | None = None,
    *,
    default: str | None = None,
) -> str:
    """Localize ``key`` for the language requested by ``request``.

    Uses the localizer the app factory stored on ``app.state``; apps without
    one get ``default`` (or the key).
    """
    localizer: Localizer | None = getattr(request.app.state, "localizer", None)
    if localizer is None:
        return default if default is not None else key
    return localizer.localize(
        key, get_current_lang(request, localizer), values, default=default
    )
