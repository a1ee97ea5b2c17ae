# =============================================================================
# bhakti_core/offline/entities.py
# Content Entities and Display Enums
# =============================================================================
"""
Deity and Stotra records shared by the local database, the cache snapshot and
the remote content source.

Both entities carry a ``language`` tag instead of having one class per
language table. The table a record lives in is derived from that tag.
"""

from __future__ import annotations
import sqlite3
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from bhakti_core.errors import ContentValidationError


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class Language(Enum):
    """Supported display languages."""
    TELUGU = "telugu"
    KANNADA = "kannada"

    @classmethod
    def parse(cls, value: Union[Language, str]) -> Language:
        if isinstance(value, Language):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ContentValidationError(
                f"Unsupported language: {value!r}",
                field="language",
                value=value,
            )

    @property
    def voice_locale(self) -> str:
        return _VOICE_LOCALES[self]

    @property
    def native_name(self) -> str:
        return _NATIVE_NAMES[self]


_VOICE_LOCALES = {
    Language.TELUGU: "te-IN",
    Language.KANNADA: "kn-IN",
}

_NATIVE_NAMES = {
    Language.TELUGU: "తెలుగు",
    Language.KANNADA: "ಕನ್ನಡ",
}


class FontSize(Enum):
    """Reader font size preference."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def points(self) -> int:
        return {"small": 14, "medium": 18, "large": 22}[self.value]


class Theme(Enum):
    """Reader colour theme preference."""
    LIGHT = "light"
    SEPIA = "sepia"
    DARK = "dark"

    @property
    def colors(self) -> Dict[str, str]:
        return dict(_THEME_COLORS[self])


_THEME_COLORS = {
    Theme.LIGHT: {"background": "#FFFFFF", "text": "#1F2937", "surface": "#F9FAFB"},
    Theme.SEPIA: {"background": "#F5F0E6", "text": "#1F2937", "surface": "#F9F7F3"},
    Theme.DARK: {"background": "#111827", "text": "#F9FAFB", "surface": "#1F2937"},
}


def _required(doc: Mapping[str, Any], key: str) -> str:
    value = doc.get(key)
    if value is None or str(value).strip() == "":
        raise ContentValidationError(f"Remote record is missing '{key}'", field=key)
    return str(value)


def _localized(doc: Mapping[str, Any], plain: str, prefix: str, language: Language) -> str:
    """Pick ``plain`` (split layout) or ``<prefix>_<language>`` (combined layout)."""
    value = doc.get(plain)
    if value in (None, ""):
        value = doc.get(f"{prefix}_{language.value}")
    return "" if value is None else str(value)


@dataclass
class Deity:
    """A devotional figure; groups stotras."""
    deity_id: str
    name: str
    language: Language
    name_english: str = ""
    image: str = ""
    id: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.name or self.name_english or self.deity_id

    @classmethod
    def from_remote(cls, doc: Mapping[str, Any], language: Language) -> Deity:
        return cls(
            deity_id=_required(doc, "deity_id"),
            name=_localized(doc, "name", "name", language),
            name_english=str(doc.get("name_english") or ""),
            image=str(doc.get("image") or ""),
            language=language,
        )

    @classmethod
    def from_row(cls, row: Union[sqlite3.Row, Mapping[str, Any]], language: Language) -> Deity:
        return cls(
            id=row["id"],
            deity_id=row["deity_id"],
            name=row["name"] or "",
            name_english=row["name_english"] or "",
            image=row["image"] or "",
            language=language,
        )

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "deity_id": self.deity_id,
            "name": self.name,
            "name_english": self.name_english,
            "image": self.image,
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any], language: Language) -> Deity:
        return cls(
            id=data.get("id"),
            deity_id=data["deity_id"],
            name=data.get("name", ""),
            name_english=data.get("name_english", ""),
            image=data.get("image", ""),
            language=language,
        )


@dataclass
class Stotra:
    """A devotional text belonging to one deity."""
    stotra_id: str
    deity_id: str
    title: str
    content: str
    language: Language
    title_english: str = ""
    is_favorite: bool = False
    version_timestamp: int = field(default_factory=now_ms)
    id: Optional[int] = None

    @property
    def display_title(self) -> str:
        return self.title or self.title_english or self.stotra_id

    @classmethod
    def from_remote(cls, doc: Mapping[str, Any], language: Language) -> Stotra:
        version = doc.get("version_timestamp")
        try:
            version = int(version) if version not in (None, "") else now_ms()
        except (TypeError, ValueError):
            raise ContentValidationError(
                "version_timestamp is not a number",
                field="version_timestamp",
                value=version,
            )
        return cls(
            stotra_id=_required(doc, "stotra_id"),
            deity_id=_required(doc, "deity_id"),
            title=_localized(doc, "title", "title", language),
            content=_localized(doc, "content", "text", language),
            title_english=str(doc.get("title_english") or ""),
            version_timestamp=version,
            language=language,
        )

    @classmethod
    def from_row(cls, row: Union[sqlite3.Row, Mapping[str, Any]], language: Language) -> Stotra:
        return cls(
            id=row["id"],
            stotra_id=row["stotra_id"],
            deity_id=row["deity_id"],
            title=row["title"] or "",
            title_english=row["title_english"] or "",
            content=row["content"] or "",
            is_favorite=bool(row["is_favorite"]),
            version_timestamp=int(row["version_timestamp"] or 0),
            language=language,
        )

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "stotra_id": self.stotra_id,
            "deity_id": self.deity_id,
            "title": self.title,
            "title_english": self.title_english,
            "content": self.content,
            "is_favorite": self.is_favorite,
            "version_timestamp": self.version_timestamp,
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any], language: Language) -> Stotra:
        return cls(
            id=data.get("id"),
            stotra_id=data["stotra_id"],
            deity_id=data["deity_id"],
            title=data.get("title", ""),
            title_english=data.get("title_english", ""),
            content=data.get("content", ""),
            is_favorite=bool(data.get("is_favorite", False)),
            version_timestamp=int(data.get("version_timestamp") or 0),
            language=language,
        )
