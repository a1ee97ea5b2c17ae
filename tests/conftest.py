# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
import pytest
import pandas as pd
from typing import Dict
from unittest.mock import MagicMock

from bhakti_core.data import RemoteContentSource
from bhakti_core.offline.cache_manager import CacheManager
from bhakti_core.offline.content_service import ContentService
from bhakti_core.offline.entities import Language
from bhakti_core.offline.local_database import LocalDatabase
from bhakti_core.offline.preferences import PreferenceStore
from bhakti_core.offline.sync_engine import SyncEngine


FIXED_NOW = 1_700_000_000_000
BASE_VERSION = 1_600_000_000_000


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

SAMPLE_CONTENT = {
    "telugu": {
        "deities": [
            {"deity_id": "ganesha", "name": "గణేశుడు", "name_english": "Ganesha", "image": "ganesha.png"},
            {"deity_id": "hanuman", "name": "హనుమంతుడు", "name_english": "Hanuman", "image": "hanuman.png"},
        ],
        "stotras": [
            {"stotra_id": "tel_s1", "deity_id": "ganesha", "title": "గణేశ పంచరత్నం",
             "title_english": "Ganesha Pancharatnam", "content": "ముదాకరాత్త మోదకం",
             "version_timestamp": BASE_VERSION},
            {"stotra_id": "tel_s2", "deity_id": "hanuman", "title": "హనుమాన్ చాలీసా",
             "title_english": "Hanuman Chalisa", "content": "శ్రీ గురు చరణ సరోజ రజ",
             "version_timestamp": BASE_VERSION},
            {"stotra_id": "tel_s3", "deity_id": "hanuman", "title": "ఆంజనేయ దండకం",
             "title_english": "Anjaneya Dandakam", "content": "శ్రీ ఆంజనేయం ప్రసన్నాంజనేయం",
             "version_timestamp": BASE_VERSION},
        ],
    },
    "kannada": {
        "deities": [
            {"deity_id": "ganesha", "name": "ಗಣೇಶ", "name_english": "Ganesha", "image": "ganesha.png"},
            {"deity_id": "shiva", "name": "ಶಿವ", "name_english": "Shiva", "image": "shiva.png"},
        ],
        "stotras": [
            {"stotra_id": "kan_s1", "deity_id": "ganesha", "title": "ಗಣೇಶ ಸ್ತೋತ್ರ",
             "title_english": "Ganesha Stotram", "content": "ವಕ್ರತುಂಡ ಮಹಾಕಾಯ",
             "version_timestamp": BASE_VERSION},
            {"stotra_id": "kan_s2", "deity_id": "shiva", "title": "ಶಿವ ಪಂಚಾಕ್ಷರ",
             "title_english": "Shiva Panchakshara", "content": "ನಾಗೇಂದ್ರಹಾರಾಯ ತ್ರಿಲೋಚನಾಯ",
             "version_timestamp": BASE_VERSION},
        ],
    },
}


class FakeClock:
    """Settable epoch-millis clock"""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def push_remote_stotra(content: Dict, language: str, record: Dict) -> None:
    """Replace the remote stotra with the same stotra_id, or append it"""
    stotras = content[language]["stotras"]
    for i, existing in enumerate(stotras):
        if record.get("stotra_id") and existing.get("stotra_id") == record["stotra_id"]:
            stotras[i] = record
            return
    stotras.append(record)


def make_fake_remote(content: Dict) -> MagicMock:
    """Remote content source backed by an in-memory dict"""
    remote = MagicMock(spec=RemoteContentSource)

    def records(language, kind):
        return [dict(r) for r in content[Language.parse(language).value][kind]]

    remote.fetch_deities.side_effect = lambda language: records(language, "deities")
    remote.fetch_stotras.side_effect = lambda language: records(language, "stotras")
    remote.fetch_stotras_since.side_effect = lambda language, since: [
        r for r in records(language, "stotras") if r.get("version_timestamp", 0) > since
    ]
    return remote


@pytest.fixture
def remote_content():
    """Mutable copy of the sample remote collections"""
    return copy.deepcopy(SAMPLE_CONTENT)


@pytest.fixture
def fake_remote(remote_content):
    return make_fake_remote(remote_content)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def push_update(remote_content):
    """Publish a new or changed stotra on the fake remote"""
    def push(language: str, record: Dict) -> None:
        push_remote_stotra(remote_content, language, record)
    return push


# =============================================================================
# STORAGE AND SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def db(tmp_path):
    """Fresh file-backed database per test (connections are per thread)"""
    database = LocalDatabase(tmp_path / "bhaktivani.db")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def preferences(db):
    return PreferenceStore(db)


@pytest.fixture
def cache(db, tmp_path):
    return CacheManager(db, tmp_path / "cache")


@pytest.fixture
def engine(db, preferences, cache, fake_remote, clock):
    preferences.set_current_language(Language.TELUGU)
    return SyncEngine(db, preferences, cache, fake_remote, clock=clock)


@pytest.fixture
def service(db, preferences, cache, engine):
    content_service = ContentService(db, preferences, cache, engine, first_download_timeout=5.0)
    yield content_service
    content_service.engine.stop_auto_sync()


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit for testing"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.secrets = {}

    monkeypatch.setattr("bhakti_core.errors.handlers.st", mock_st)
    monkeypatch.setattr("bhakti_core.config.st", mock_st)

    yield mock_st


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    query = mock_client.table.return_value.select.return_value
    query.gt.return_value = query
    query.range.return_value.execute.return_value.data = []
    return mock_client


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def assert_dataframe_equal(df1, df2, check_dtype=False):
    """Assert two DataFrames are equal"""
    pd.testing.assert_frame_equal(df1, df2, check_dtype=check_dtype)
