"""
Display preferences (theme and font size), kept in a small JSON file under a
single ``userSettings`` key. Read once at startup, written on every change.
"""
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

SETTINGS_KEY = "userSettings"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class FontSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class DisplayPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    theme: Theme = Theme.SYSTEM
    font_size: FontSize = FontSize.MEDIUM


class PreferencesStore:
    def __init__(self, path: str):
        self.path = Path(path)
        self.current = self.load()

    def load(self) -> DisplayPreferences:
        if not self.path.exists():
            return DisplayPreferences()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return DisplayPreferences.model_validate(raw.get(SETTINGS_KEY) or {})
        except (OSError, ValueError, AttributeError, ValidationError) as exc:
            logger.error("Could not read display preferences from %s: %s", self.path, exc)
            return DisplayPreferences()

    def save(self, theme: Optional[Theme] = None, font_size: Optional[FontSize] = None) -> DisplayPreferences:
        updated = self.current.model_copy(update={
            k: v for k, v in (("theme", theme), ("font_size", font_size)) if v is not None
        })
        payload = {SETTINGS_KEY: updated.model_dump(mode="json")}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        self.current = updated
        return updated
