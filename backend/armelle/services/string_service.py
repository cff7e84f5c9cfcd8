# /armelle/services/string_service.py

import logging
from typing import Any, Dict, List, Mapping, Optional

from armelle.config.strings import FALLBACK_LANGUAGE, STRINGS
from armelle.workflows.templates import interpolate

logger = logging.getLogger(__name__)

class StringService:
    """
    Localized string lookup.

    Keys missing from the requested language fall back to the default
    language. A key missing everywhere is returned as-is, which lets prompt
    keys double as literal text (e.g. taxpayer names used as choice labels).
    """

    def __init__(self, tables: Optional[Dict[str, Dict[str, str]]] = None, default_language: str = FALLBACK_LANGUAGE):
        self._tables = tables if tables is not None else STRINGS
        self.default_language = default_language
        logger.info(f"StringService initialized with languages: {', '.join(self.languages())}")

    def languages(self) -> List[str]:
        return sorted(self._tables)

    def resolve_language(self, language: Optional[str]) -> str:
        candidate = (language or "").strip().lower()
        return candidate if candidate in self._tables else self.default_language

    def has(self, key: str, language: Optional[str] = None) -> bool:
        return key in self._tables.get(self.resolve_language(language), {})

    def get_string(self, key: str, language: Optional[str] = None, default: Optional[str] = None) -> str:
        """Gets a string for a language, falling back to the default language."""
        lang = self.resolve_language(language)
        value = self._tables.get(lang, {}).get(key)
        if value is None and lang != self.default_language:
            value = self._tables.get(self.default_language, {}).get(key)
        if value is None:
            return default if default is not None else key
        return value

    def format(self, key: str, language: Optional[str] = None, params: Optional[Mapping[str, Any]] = None) -> str:
        return interpolate(self.get_string(key, language), params or {})
