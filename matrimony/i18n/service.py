"""File-based message catalog for user-facing reason strings."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any


class I18nService:
    def __init__(self, *, locales_path: str | Path | None = None, default_locale: str = "en") -> None:
        self.locales_path = Path(locales_path or Path(__file__).with_name("locales"))
        self.default_locale = default_locale

    def gettext(self, key: str, *, locale: str | None = None, **kwargs: Any) -> str:
        text = None
        for candidate in self._candidates(locale):
            text = self._lookup(candidate, key)
            if text is not None:
                break
        if text is None:
            text = key
        return text.format(**kwargs) if kwargs else text

    def _candidates(self, locale: str | None) -> list[str]:
        # "hi-IN" -> ["hi-in", "hi", default]
        loc = (locale or self.default_locale).lower().replace("_", "-")
        candidates = [loc]
        base = loc.split("-", 1)[0]
        if base != loc:
            candidates.append(base)
        if self.default_locale not in candidates:
            candidates.append(self.default_locale)
        return candidates

    @lru_cache(maxsize=16)
    def _load_locale(self, locale: str) -> dict[str, str]:
        file_path = self.locales_path / f"{locale}.json"
        if not file_path.exists():
            return {}
        with file_path.open("r", encoding="utf-8") as fp:
            return json.load(fp)

    def _lookup(self, locale: str, key: str) -> str | None:
        return self._load_locale(locale).get(key)


__all__ = ["I18nService"]
