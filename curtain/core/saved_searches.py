"""
Saved search persistence.

Named search configurations are stored together with the summaries they
produced, so a saved search can be reopened without re-running it. The
search engine only talks to the SavedSearchStore interface; SQLite is the
bundled implementation.
"""

import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from curtain.core.exceptions import SavedSearchError
from curtain.shared import CrossDatasetSearchConfig, ProteinSearchSummary, SavedSearch

logger = logging.getLogger(__name__)

_SUMMARIES = TypeAdapter(List[ProteinSearchSummary])


def serialize_config(config: CrossDatasetSearchConfig) -> str:
    return config.model_dump_json(by_alias=True)


def serialize_summaries(summaries: Sequence[ProteinSearchSummary]) -> str:
    return _SUMMARIES.dump_json(list(summaries), by_alias=True).decode("utf-8")


def deserialize_config(text: str) -> CrossDatasetSearchConfig:
    return CrossDatasetSearchConfig.model_validate_json(text)


def deserialize_summaries(text: str) -> List[ProteinSearchSummary]:
    return _SUMMARIES.validate_json(text)


class SavedSearchStore(ABC):
    """Persistence interface for saved searches."""

    @abstractmethod
    def save(self, name: str, config: CrossDatasetSearchConfig,
             summaries: Sequence[ProteinSearchSummary]) -> str:
        """
        Persist a search and its summaries.

        Returns:
            The new saved search id
        """
        pass

    @abstractmethod
    def load_all(self) -> List[SavedSearch]:
        """All saved searches, most recently opened first."""
        pass

    @abstractmethod
    def get(self, search_id: str) -> SavedSearch:
        pass

    @abstractmethod
    def rename(self, search_id: str, name: str) -> None:
        pass

    @abstractmethod
    def delete(self, search_id: str) -> None:
        pass

    @abstractmethod
    def touch_last_opened(self, search_id: str) -> None:
        pass


class SQLiteSavedSearchStore(SavedSearchStore):
    """
    Saved searches in a single SQLite table.

    A connection is opened per operation so the store can be shared between
    threads. Every storage or decoding failure is raised as SavedSearchError.
    """

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            curtain_dir = Path.home() / ".curtain"
            curtain_dir.mkdir(exist_ok=True)
            db_path = str(curtain_dir / "saved_searches.db")
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = db_path
        self._setup_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, check_same_thread=False)

    def _setup_database(self):
        """Create saved_searches table if it doesn't exist."""
        try:
            conn = self._connect()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS saved_searches (
                        search_id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        config TEXT NOT NULL,
                        summaries TEXT NOT NULL,
                        protein_count INTEGER NOT NULL,
                        dataset_count INTEGER NOT NULL,
                        created TEXT NOT NULL,
                        last_opened TEXT NOT NULL
                    )
                """)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise SavedSearchError(f"Could not open saved search database {self.db_path}: {e}")

    def _execute(self, sql: str, params: tuple = (), search_id: Optional[str] = None) -> int:
        """Run one write statement and return the affected row count."""
        try:
            conn = self._connect()
            try:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                conn.commit()
                return cursor.rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Saved search database error: {e}")
            raise SavedSearchError(f"Saved search database error: {e}", search_id)

    def _query(self, sql: str, params: tuple = ()) -> list:
        try:
            conn = self._connect()
            try:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                return cursor.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Saved search database error: {e}")
            raise SavedSearchError(f"Saved search database error: {e}")

    def _row_to_saved_search(self, row) -> SavedSearch:
        search_id, name, config, summaries, protein_count, dataset_count, created, last_opened = row
        try:
            return SavedSearch(
                search_id=search_id,
                name=name,
                config=deserialize_config(config),
                summaries=deserialize_summaries(summaries),
                protein_count=protein_count,
                dataset_count=dataset_count,
                created=datetime.fromisoformat(created),
                last_opened=datetime.fromisoformat(last_opened),
            )
        except (ValidationError, ValueError) as e:
            raise SavedSearchError(f"Saved search {search_id} is corrupt: {e}", search_id)

    def save(self, name: str, config: CrossDatasetSearchConfig,
             summaries: Sequence[ProteinSearchSummary]) -> str:
        name = (name or "").strip()
        if not name:
            raise SavedSearchError("Saved search name cannot be empty")

        search_id = uuid.uuid4().hex
        now = datetime.now().isoformat()
        protein_count = len(summaries)

        self._execute("""
            INSERT INTO saved_searches
                (search_id, name, config, summaries, protein_count, dataset_count, created, last_opened)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (search_id, name, serialize_config(config), serialize_summaries(summaries),
              protein_count, len(config.dataset_link_ids), now, now), search_id)

        logger.info(f"Saved search '{name}' as {search_id}")
        return search_id

    def load_all(self) -> List[SavedSearch]:
        rows = self._query("SELECT * FROM saved_searches ORDER BY last_opened DESC, created DESC")
        return [self._row_to_saved_search(row) for row in rows]

    def get(self, search_id: str) -> SavedSearch:
        rows = self._query("SELECT * FROM saved_searches WHERE search_id = ?", (search_id,))
        if not rows:
            raise SavedSearchError(f"No saved search with id {search_id}", search_id)
        return self._row_to_saved_search(rows[0])

    def rename(self, search_id: str, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise SavedSearchError("Saved search name cannot be empty", search_id)
        if self._execute("UPDATE saved_searches SET name = ? WHERE search_id = ?",
                         (name, search_id), search_id) == 0:
            raise SavedSearchError(f"No saved search with id {search_id}", search_id)

    def delete(self, search_id: str) -> None:
        if self._execute("DELETE FROM saved_searches WHERE search_id = ?",
                         (search_id,), search_id) == 0:
            raise SavedSearchError(f"No saved search with id {search_id}", search_id)
        logger.info(f"Deleted saved search {search_id}")

    def touch_last_opened(self, search_id: str) -> None:
        if self._execute("UPDATE saved_searches SET last_opened = ? WHERE search_id = ?",
                         (datetime.now().isoformat(), search_id), search_id) == 0:
            raise SavedSearchError(f"No saved search with id {search_id}", search_id)
