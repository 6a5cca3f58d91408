"""
Append-only storage of crawl results on top of :class:`~adaptive_crawler.infra.db.Database`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .infra.db import Database
from .models import CrawlResult, DataType, SemanticAnalysis, StoredResult

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO crawl_results
    (url, data, data_type, confidence, semantic_quality,
     coherence_score, context_score, anomaly_score,
     extraction_time, metadata, vector_id)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


class StorageEngine:
    """Durable result store: two write paths, recency and substring reads.

    Rows are never updated or deleted. Write failures are logged and
    reported through the boolean return value; they never propagate.
    """

    def __init__(self, db_path: str = "data/crawler_advanced.db", db: Optional[Database] = None):
        self.db = db or Database(db_path)
        self._vector_mapping: Dict[int, str] = {}

    async def connect(self) -> None:
        await self.db.connect()

    async def close(self) -> None:
        await self.db.close()

    # ------------------------------------------------------------------ #
    async def _insert(self, result: CrawlResult, analysis: Optional[SemanticAnalysis]) -> bool:
        data_type = result.metadata.get("data_type", DataType.TEXT.value)
        params = (
            result.source_url,
            _dumps(result.data),
            str(getattr(data_type, "value", data_type)),
            result.confidence,
            analysis.semantic_quality if analysis else None,
            analysis.coherence if analysis else None,
            analysis.context_relevance if analysis else None,
            analysis.anomaly_level if analysis else None,
            result.extraction_time,
            _dumps(result.metadata),
            None,
        )
        try:
            await self.db.write(_INSERT_SQL, params)
        except Exception as e:
            logger.error(f"Result storage failed for {result.source_url}: {e}")
            return False
        logger.debug(f"Stored result from {result.source_url} (confidence {result.confidence:.2f})")
        return True

    async def store_result(self, result: CrawlResult) -> bool:
        return await self._insert(result, None)

    async def store_with_analysis(self, result: CrawlResult, analysis: SemanticAnalysis) -> bool:
        return await self._insert(result, analysis)

    async def record_learning_stats(self, agent_stats: Iterable[Dict[str, Any]]) -> int:
        """Snapshot agent strategies into ``learning_stats``; returns rows written."""
        written = 0
        for stats in agent_stats:
            try:
                await self.db.write(
                    """
                    INSERT INTO learning_stats (agent_name, success_rate, adaptation_level, strategy)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        stats["name"],
                        stats.get("success_rate"),
                        stats.get("adaptation_threshold"),
                        stats.get("strategy"),
                    ),
                )
                written += 1
            except Exception as e:
                logger.error(f"Learning stats storage failed for {stats.get('name')}: {e}")
        return written

    # ------------------------------------------------------------------ #
    async def get_results(self, limit: int = 100) -> List[StoredResult]:
        try:
            rows = await self.db.fetch_all(
                "SELECT * FROM crawl_results ORDER BY timestamp DESC, id DESC LIMIT ?",
                (limit,),
            )
        except Exception as e:
            logger.error(f"Failed to retrieve results: {e}")
            return []
        return [StoredResult(**dict(row)) for row in rows]

    async def search_results(self, query: str, limit: int = 50) -> List[StoredResult]:
        like = f"%{query}%"
        try:
            rows = await self.db.fetch_all(
                """
                SELECT * FROM crawl_results
                WHERE data LIKE ? OR url LIKE ?
                ORDER BY confidence DESC
                LIMIT ?
                """,
                (like, like, limit),
            )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            return []
        return [StoredResult(**dict(row)) for row in rows]

    async def get_learning_stats(self, limit: int = 100) -> List[Dict[str, Any]]:
        rows = await self.db.fetch_all(
            "SELECT * FROM learning_stats ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [dict(row) for row in rows]

    async def get_stats(self) -> Dict[str, Any]:
        try:
            row = await self.db.fetch_one(
                """
                SELECT COUNT(*) AS total,
                       AVG(confidence) AS avg_confidence,
                       AVG(semantic_quality) AS avg_semantic_quality
                FROM crawl_results
                """
            )
        except Exception as e:
            logger.error(f"Failed to get storage stats: {e}")
            return {}

        return {
            "total_results": row["total"],
            "avg_confidence": row["avg_confidence"] or 0.0,
            "avg_semantic_quality": row["avg_semantic_quality"] or 0.0,
            "vector_db_size": len(self._vector_mapping),
            "vector_search_available": False,
        }
