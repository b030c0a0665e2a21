"""Tests for message catalogs and language negotiation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from starlette.requests import Request

from app.core.errors import ConfigurationAppError
from app.core.i18n import CATALOG_DIR, Localizer, get_current_lang, parse_language_list


def _request(accept_language: str | None) -> Request:
    headers = []
    if accept_language is not None:
        headers.append((b"accept-language", accept_language.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


@pytest.fixture
def localizer() -> Localizer:
    return Localizer(
        {
            "en": {"not_found": "Not found", "field_required": "The {field} field is required"},
            "vi": {"not_found": "Không tìm thấy"},
        },
        default_language="en",
    )


class TestParseLanguageList:
    def test_parses_and_normalizes(self) -> None:
        assert parse_language_list("en, VI ,en") == ["en", "vi"]

    def test_empty_inputs(self) -> None:
        assert parse_language_list(None) == []
        assert parse_language_list("") == []
        assert parse_language_list(" , ") == []


class TestLocalize:
    def test_translates_by_language(self, localizer: Localizer) -> None:
        assert localizer.localize("not_found", "vi") == "Không tìm thấy"
        assert localizer.localize("not_found", "en") == "Not found"

    def test_defaults_to_default_language(self, localizer: Localizer) -> None:
        assert localizer.localize("not_found") == "Not found"

    def test_unknown_language_returns_key(self, localizer: Localizer) -> None:
        assert localizer.localize("not_found", "fr") == "not_found"

    def test_unknown_key_returns_default_when_given(self, localizer: Localizer) -> None:
        assert localizer.localize("missing", "en") == "missing"
        assert localizer.localize("missing", "en", default="Fallback") == "Fallback"

    def test_formats_values(self, localizer: Localizer) -> None:
        message = localizer.localize("field_required", "en", {"field": "title"})
        assert message == "The title field is required"

    def test_missing_values_leave_template(self, localizer: Localizer) -> None:
        message = localizer.localize("field_required", "en", {"other": "x"})
        assert message == "The {field} field is required"


class TestFromDirectory:
    def test_bundled_catalogs_share_keys(self) -> None:
        localizer = Localizer.from_directory(CATALOG_DIR, ["en", "vi"])

        assert localizer.languages == ["en", "vi"]
        en = json.loads((CATALOG_DIR / "en.json").read_text(encoding="utf-8"))
        vi = json.loads((CATALOG_DIR / "vi.json").read_text(encoding="utf-8"))
        assert set(en) == set(vi)
        assert "too_many_requests" in en

    def test_missing_catalog_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationAppError) as exc_info:
            Localizer.from_directory(tmp_path, ["de"])

        assert exc_info.value.code == "catalog_not_found"
        assert exc_info.value.details["language"] == "de"

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        (tmp_path / "en.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationAppError) as exc_info:
            Localizer.from_directory(tmp_path, ["en"])

        assert exc_info.value.code == "catalog_invalid"

    def test_non_string_values_raise(self, tmp_path: Path) -> None:
        (tmp_path / "en.json").write_text(json.dumps({"not_found": 404}), encoding="utf-8")

        with pytest.raises(ConfigurationAppError):
            Localizer.from_directory(tmp_path, ["en"])


class TestGetCurrentLang:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("vi", "vi"),
            ("VI-vn", "vi"),
            ("vi-VN,vi;q=0.9,en;q=0.8", "vi"),
            ("en;q=0.7", "en"),
            ("fr-FR", "en"),
            ("", "en"),
            (None, "en"),
        ],
    )
    def test_negotiation(self, localizer: Localizer, header: str | None, expected: str) -> None:
        assert get_current_lang(_request(header), localizer) == expected
