# =============================================================================
# bhakti_core/config.py
# Application Configuration
# =============================================================================
"""
Configuration is read from, in increasing order of precedence:

1. Built-in defaults
2. A ``.env`` file and environment variables (``BHAKTI_*``, ``SUPABASE_URL``,
   ``SUPABASE_KEY``)
3. Streamlit secrets (``.streamlit/secrets.toml``)::

    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"

    [bhakti]
    collection_layout = "split"
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import streamlit as st
from dotenv import load_dotenv

from bhakti_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "local_data"

COLLECTION_LAYOUTS = ("split", "combined")


@dataclass
class AppConfig:
    """Runtime settings for the content core."""
    db_path: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "bhaktivani.db")
    cache_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "cache")
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    collection_layout: str = "split"
    auto_sync_interval_days: float = 7.0
    first_download_timeout: float = 60.0
    log_level: str = "INFO"

    def __post_init__(self):
        self.db_path = Path(self.db_path)
        self.cache_dir = Path(self.cache_dir)
        if self.collection_layout not in COLLECTION_LAYOUTS:
            raise ConfigurationError(
                f"Unknown collection layout '{self.collection_layout}'",
                config_key="collection_layout",
                expected=" or ".join(COLLECTION_LAYOUTS),
            )
        if self.auto_sync_interval_days <= 0:
            raise ConfigurationError(
                "Auto sync interval must be positive",
                config_key="auto_sync_interval_days",
                expected="> 0",
            )

    @property
    def has_remote(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _read_secrets() -> Dict[str, Any]:
    """Return the relevant Streamlit secrets sections, or an empty dict."""
    try:
        secrets: Dict[str, Any] = {}
        if "supabase" in st.secrets:
            secrets["supabase"] = dict(st.secrets["supabase"])
        if "bhakti" in st.secrets:
            secrets["bhakti"] = dict(st.secrets["bhakti"])
        return secrets
    except Exception as e:
        # No secrets.toml outside a configured Streamlit deployment
        logger.debug(f"Streamlit secrets not available: {e}")
        return {}


def _to_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid number for {key}: {value!r}", config_key=key, expected="number")


def load_config(env_file: Optional[str] = None, use_secrets: bool = True) -> AppConfig:
    """
    Build an AppConfig from environment variables and Streamlit secrets.

    Args:
        env_file: Optional path to a .env file (default: search upwards)
        use_secrets: Whether Streamlit secrets may override the environment
    """
    load_dotenv(env_file)

    values: Dict[str, Any] = {}

    if os.getenv("BHAKTI_DB_PATH"):
        values["db_path"] = os.getenv("BHAKTI_DB_PATH")
    if os.getenv("BHAKTI_CACHE_DIR"):
        values["cache_dir"] = os.getenv("BHAKTI_CACHE_DIR")
    if os.getenv("BHAKTI_COLLECTION_LAYOUT"):
        values["collection_layout"] = os.getenv("BHAKTI_COLLECTION_LAYOUT")
    if os.getenv("BHAKTI_AUTO_SYNC_DAYS"):
        values["auto_sync_interval_days"] = _to_float(os.getenv("BHAKTI_AUTO_SYNC_DAYS"), "BHAKTI_AUTO_SYNC_DAYS")
    if os.getenv("BHAKTI_DOWNLOAD_TIMEOUT"):
        values["first_download_timeout"] = _to_float(os.getenv("BHAKTI_DOWNLOAD_TIMEOUT"), "BHAKTI_DOWNLOAD_TIMEOUT")
    if os.getenv("BHAKTI_LOG_LEVEL"):
        values["log_level"] = os.getenv("BHAKTI_LOG_LEVEL")

    values["supabase_url"] = os.getenv("SUPABASE_URL")
    values["supabase_key"] = os.getenv("SUPABASE_KEY")

    if use_secrets:
        secrets = _read_secrets()
        supabase = secrets.get("supabase", {})
        if supabase.get("url"):
            values["supabase_url"] = supabase["url"]
        if supabase.get("key"):
            values["supabase_key"] = supabase["key"]
        bhakti = secrets.get("bhakti", {})
        if "collection_layout" in bhakti:
            values["collection_layout"] = bhakti["collection_layout"]
        if "auto_sync_interval_days" in bhakti:
            values["auto_sync_interval_days"] = _to_float(bhakti["auto_sync_interval_days"], "auto_sync_interval_days")

    config = AppConfig(**values)
    if not config.has_remote:
        logger.warning("Supabase credentials not configured; remote sync is unavailable")
    return config
