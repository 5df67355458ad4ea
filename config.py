"""
Configuration for TubeTrend Expert.

Settings come from Streamlit secrets first, then environment variables (a
local .env file is loaded on import). UI preferences are kept in a small JSON
file next to the app. API keys are never written to that file; they live in
the visitor's browser (see key_store.py).
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import streamlit as st
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

PROJECT_ROOT = Path(__file__).parent

load_dotenv(PROJECT_ROOT / '.env')

CONFIG_FILE = 'dashboard_config.json'

DEFAULT_GEMINI_MODEL = 'gemini-3-flash-preview'

# Preferences that are safe to keep on disk
PREFERENCE_DEFAULTS = {
    'keyword': '',
    'video_type': 'all',
    'min_ratio': 0,
}

logger = logging.getLogger(__name__)


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Look up a setting in Streamlit secrets, then the environment."""
    try:
        if name in st.secrets:
            return st.secrets[name]
    except Exception:
        # No secrets.toml, or not running under `streamlit run`
        pass
    return os.environ.get(name, default)


def get_gemini_model() -> str:
    return get_setting('GEMINI_MODEL') or DEFAULT_GEMINI_MODEL


def load_config() -> Dict:
    """Load saved UI preferences. Missing or unreadable files give the defaults."""
    prefs = dict(PREFERENCE_DEFAULTS)
    if not os.path.exists(CONFIG_FILE):
        return prefs
    try:
        with open(CONFIG_FILE, 'r') as f:
            saved = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {CONFIG_FILE}: {e}")
        return prefs
    if isinstance(saved, dict):
        prefs.update({k: v for k, v in saved.items() if k in PREFERENCE_DEFAULTS})
    return prefs


def save_config(prefs: Dict) -> bool:
    """Save UI preferences. Only known preference keys are written."""
    state = {k: prefs.get(k, default) for k, default in PREFERENCE_DEFAULTS.items()}
    try:
        with open(CONFIG_FILE, 'w') as f:
            json.dump(state, f)
    except OSError as e:
        logger.warning(f"Could not save {CONFIG_FILE}: {e}")
        return False
    return True


def setup_logging(level: Optional[str] = None) -> None:
    """Install a rich console handler on the root logger (once per process)."""
    level = (level or get_setting('LOG_LEVEL', 'INFO')).upper()
    root = logging.getLogger()
    if any(isinstance(h, RichHandler) for h in root.handlers):
        root.setLevel(level)
        return

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter('%(name)s: %(message)s'))
    root.addHandler(handler)
    root.setLevel(level)

    # googleapiclient logs every discovery lookup at INFO
    logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)
