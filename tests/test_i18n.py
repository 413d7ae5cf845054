"""Tests for the I18nService translation lookup and fallback."""

from __future__ import annotations

import json
from pathlib import Path

from matrimony.i18n import I18nService


def test_gettext_returns_translated_string(tmp_path: Path):
    locale_dir = tmp_path / "locales"
    locale_dir.mkdir()
    (locale_dir / "en.json").write_text('{"limit": "Limit {weekly_limit}/week"}', encoding="utf-8")
    service = I18nService(locales_path=locale_dir, default_locale="en")

    assert service.gettext("limit", weekly_limit=12) == "Limit 12/week"


def test_gettext_falls_back_to_base_language_then_default(tmp_path: Path):
    locale_dir = tmp_path / "locales"
    locale_dir.mkdir()
    (locale_dir / "en.json").write_text('{"greet": "Hello", "bye": "Bye"}', encoding="utf-8")
    (locale_dir / "mr.json").write_text('{"greet": "Namaskar"}', encoding="utf-8")
    service = I18nService(locales_path=locale_dir, default_locale="en")

    assert service.gettext("greet", locale="mr_IN") == "Namaskar"
    assert service.gettext("bye", locale="mr-IN") == "Bye"
    assert service.gettext("greet", locale="es") == "Hello"
    assert service.gettext("missing.key") == "missing.key"


def test_bundled_locales_cover_contact_reasons():
    service = I18nService()

    text = service.gettext("contact.total_limit_reached", total_limit=180)

    assert text == "Total profile contact limit reached (180). Upgrade to a higher package."
    assert service.gettext("contact.package_expired", locale="hi") != service.gettext(
        "contact.package_expired"
    )


def test_hindi_locale_has_every_bundled_key():
    locale_dir = Path(__file__).resolve().parents[1] / "matrimony" / "i18n" / "locales"
    english = json.loads((locale_dir / "en.json").read_text(encoding="utf-8"))
    hindi = json.loads((locale_dir / "hi.json").read_text(encoding="utf-8"))

    assert set(hindi) == set(english)
