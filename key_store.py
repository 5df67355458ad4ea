"""
Key Store: the two user-supplied API keys, kept in the visitor's browser.

Keys are loaded once at startup into an ApiKeys value, which is then passed
explicitly into every client call. Edits are written back to localStorage as
soon as they happen.
"""

import logging
from dataclasses import dataclass, replace

from config import get_setting

logger = logging.getLogger(__name__)

YOUTUBE_KEY_NAME = "yt_api_key"
GEMINI_KEY_NAME = "gemini_api_key"

# localStorage name -> fallback setting (secrets / environment)
_FALLBACK_SETTINGS = {
    YOUTUBE_KEY_NAME: "YOUTUBE_API_KEY",
    GEMINI_KEY_NAME: "GEMINI_API_KEY",
}


@dataclass(frozen=True)
class ApiKeys:
    youtube: str = ""
    gemini: str = ""

    @property
    def has_youtube(self) -> bool:
        return bool(self.youtube)

    @property
    def has_gemini(self) -> bool:
        return bool(self.gemini)


def mask_key(key: str) -> str:
    """Show just enough of a key to recognise it."""
    if not key:
        return ""
    return key[:8] + "..." + key[-4:] if len(key) > 12 else "***"


class KeyStore:
    """
    Reads and writes API keys through a localStorage wrapper.

    `storage` is a streamlit_local_storage.LocalStorage (or anything with the
    same getItem / setItem / deleteItem methods).
    """

    def __init__(self, storage):
        self.storage = storage

    def _read(self, name: str) -> str:
        value = self.storage.getItem(name)
        if value:
            return str(value)
        return get_setting(_FALLBACK_SETTINGS[name], "") or ""

    def load(self) -> ApiKeys:
        keys = ApiKeys(youtube=self._read(YOUTUBE_KEY_NAME), gemini=self._read(GEMINI_KEY_NAME))
        logger.debug(
            f"Loaded keys (youtube={'set' if keys.has_youtube else 'empty'}, "
            f"gemini={'set' if keys.has_gemini else 'empty'})"
        )
        return keys

    def save(self, name: str, value: str) -> None:
        """Persist one key. An empty value removes it."""
        if name not in _FALLBACK_SETTINGS:
            raise ValueError(f"Unknown key name: {name}")
        value = (value or "").strip()
        if value:
            self.storage.setItem(name, value, key=f"set_{name}")
        else:
            self.storage.deleteItem(name, key=f"delete_{name}")

    def update(self, keys: ApiKeys, youtube: str = None, gemini: str = None) -> ApiKeys:
        """Apply a user edit, persist what changed and return the new keys."""
        changes = {}
        if youtube is not None and youtube.strip() != keys.youtube:
            self.save(YOUTUBE_KEY_NAME, youtube)
            changes["youtube"] = youtube.strip()
        if gemini is not None and gemini.strip() != keys.gemini:
            self.save(GEMINI_KEY_NAME, gemini)
            changes["gemini"] = gemini.strip()
        return replace(keys, **changes) if changes else keys

    def clear(self, keys: ApiKeys, name: str) -> ApiKeys:
        """Remove one key from the browser."""
        self.save(name, "")
        if name == YOUTUBE_KEY_NAME:
            return replace(keys, youtube="")
        return replace(keys, gemini="")
