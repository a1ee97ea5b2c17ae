# =============================================================================
# bhakti_core/data/supabase_client.py
# Supabase Client and Read-Only Content Source
# =============================================================================

from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from bhakti_core.errors import RemoteContentError
from bhakti_core.offline.entities import Language

logger = logging.getLogger(__name__)

# Supabase returns at most this many rows per request
BATCH_SIZE = 1000


def get_supabase_client(config):
    """
    Create a Supabase client from an AppConfig.

    Returns:
        Supabase client instance or None if credentials are not configured
    """
    if not config.has_remote:
        return None

    from supabase import create_client, Client

    try:
        client: Client = create_client(config.supabase_url, config.supabase_key)
        return client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        return None


class RemoteContentSource:
    """
    Read-only access to the hosted deity and stotra collections.

    Two collection layouts exist:
        split:    deities_<lang>, stotras_<lang> with name/title/content
        combined: deities, stotras with name_<lang>/title_<lang>/text_<lang>

    Records are returned as plain dicts; turning them into entities is up to
    the caller so that one bad record can be handled on its own.
    """

    def __init__(self, client, layout: str = "split"):
        """
        Args:
            client: Supabase client (or anything exposing ``.table(name)``)
            layout: "split" or "combined"
        """
        self.client = client
        self.layout = layout

    def is_connected(self) -> bool:
        """Check if a client is available."""
        return self.client is not None

    def collection_name(self, kind: str, language: Language) -> str:
        if self.layout == "combined":
            return kind
        return f"{kind}_{Language.parse(language).value}"

    def _fetch(self, table: str, since: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch every matching record of ``table`` (handles the 1000 row limit).
        """
        if not self.is_connected():
            raise RemoteContentError("Remote content source is not configured", collection=table)

        try:
            all_data: List[Dict[str, Any]] = []
            offset = 0

            while True:
                query = self.client.table(table).select("*")
                if since is not None:
                    query = query.gt("version_timestamp", since)
                response = query.range(offset, offset + BATCH_SIZE - 1).execute()

                if response.data:
                    all_data.extend(response.data)
                    if len(response.data) < BATCH_SIZE:
                        break
                    offset += BATCH_SIZE
                else:
                    break

            return all_data

        except RemoteContentError:
            raise
        except Exception as e:
            raise RemoteContentError(f"Error fetching {table}: {e}", collection=table) from e

    def fetch_deities(self, language: Language) -> List[Dict[str, Any]]:
        """All deity records for ``language``."""
        table = self.collection_name("deities", language)
        records = self._fetch(table)
        logger.info(f"Fetched {len(records)} deities from {table}")
        return records

    def fetch_stotras(self, language: Language) -> List[Dict[str, Any]]:
        """All stotra records for ``language``."""
        table = self.collection_name("stotras", language)
        records = self._fetch(table)
        logger.info(f"Fetched {len(records)} stotras from {table}")
        return records

    def fetch_stotras_since(self, language: Language, since: int) -> List[Dict[str, Any]]:
        """Stotra records whose version_timestamp is greater than ``since``."""
        table = self.collection_name("stotras", language)
        records = self._fetch(table, since=int(since))
        logger.info(f"Found {len(records)} stotras in {table} newer than {since}")
        return records
