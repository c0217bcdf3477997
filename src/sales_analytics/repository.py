from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, Row

from .config import RepositoryConfig
from .models import AnalyticsSnapshot

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """
    Interface for loading the analytics snapshot.

    The engine itself never fetches data; callers load one snapshot per
    dashboard session and hand it to :class:`SalesAnalyticsService`.
    """

    def load(self) -> Optional[AnalyticsSnapshot]:
        raise NotImplementedError


class SQLSnapshotRepository(SnapshotRepository):
    """
    Load the newest snapshot stored by the backend.

    Expected table:
      - analytics_snapshots(id, payload_json, captured_at)
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self) -> Optional[AnalyticsSnapshot]:
        query = text(
            """
            SELECT id, payload_json
            FROM analytics_snapshots
            ORDER BY captured_at DESC, id DESC
            LIMIT 1
            """
        )
        with self.engine.connect() as connection:
            row = connection.execute(query).fetchone()
        if row is None:
            return None
        return self._row_to_snapshot(row)

    @staticmethod
    def _row_to_snapshot(row: Row) -> AnalyticsSnapshot:
        payload: Any = row.payload_json
        if isinstance(payload, (bytes, str)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                logger.warning("Snapshot %s has an invalid JSON payload", row.id)
                payload = {}
        if not isinstance(payload, Mapping):
            payload = {}
        return AnalyticsSnapshot.from_payload(payload, snapshot_id=str(row.id))


def build_repository_from_env(config: Optional[RepositoryConfig] = None) -> Optional[SnapshotRepository]:
    cfg = config or RepositoryConfig.from_env()
    if cfg.database_url:
        engine = create_engine(cfg.database_url)
        return SQLSnapshotRepository(engine)
    return None
