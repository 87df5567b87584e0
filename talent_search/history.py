"""검색 기록 저장소 - 사용자별 append-only 로그 (pgvector)."""

import logging
from collections.abc import Iterator

import psycopg
from pgvector.psycopg import register_vector

from talent_search.config import settings
from talent_search.errors import HistoryPermissionError, NotFoundError, RetrievalError
from talent_search.models import SearchHistoryEntry

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = "id::text, user_id, query, content_type, created_at, results_count, embedding"


def _row_to_entry(row) -> SearchHistoryEntry:
    embedding = row[6]
    return SearchHistoryEntry(
        id=row[0],
        user_id=row[1],
        query=row[2],
        content_type=row[3],
        created_at=row[4],
        results_count=row[5],
        embedding=embedding.tolist() if embedding is not None else None,
    )


class SearchHistoryStore:
    def __init__(self, conninfo: str | None = None):
        self._conninfo = conninfo or settings.database_url

    def _connect(self) -> psycopg.Connection:
        conn = psycopg.connect(self._conninfo)
        register_vector(conn)
        return conn

    def record(
        self,
        user_id: str,
        query: str,
        content_type: str,
        results_count: int,
        embedding: list[float] | None = None,
    ) -> SearchHistoryEntry:
        """실행된 검색 한 건을 기록한다."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO search_history (user_id, query, content_type, results_count, embedding)
                    VALUES (%s, %s, %s, %s, %s::vector)
                    RETURNING {_ENTRY_COLUMNS}
                    """,
                    (
                        user_id,
                        query,
                        content_type,
                        results_count,
                        str(embedding) if embedding is not None else None,
                    ),
                ).fetchone()
                conn.commit()
        except psycopg.Error as e:
            raise RetrievalError(f"history write failed: {e}") from e
        return _row_to_entry(row)

    def list(
        self,
        user_id: str,
        page: int = 1,
        limit: int | None = None,
    ) -> tuple[list[SearchHistoryEntry], int]:
        """사용자의 검색 기록을 최신순으로 반환한다.

        Returns:
            (entries, total) 튜플. total은 페이지와 무관한 전체 건수.

        Raises:
            RetrievalError: DB 연결 또는 쿼리 실패.
        """
        limit = limit or settings.history_page_size
        offset = (page - 1) * limit
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"""
                    SELECT {_ENTRY_COLUMNS}
                    FROM search_history
                    WHERE user_id = %s
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    (user_id, limit, offset),
                ).fetchall()
                total = conn.execute(
                    "SELECT COUNT(*) FROM search_history WHERE user_id = %s",
                    (user_id,),
                ).fetchone()[0]
        except psycopg.Error as e:
            raise RetrievalError(f"history lookup failed: {e}") from e
        return [_row_to_entry(row) for row in rows], total

    def delete_one(self, user_id: str, entry_id: str) -> None:
        """검색 기록 한 건을 삭제한다.

        삭제와 소유자 확인은 한 트랜잭션 안에서 처리한다.
        삭제된 행이 없으면 같은 연결에서 소유자를 조회해 원인을 구분한다.

        Raises:
            NotFoundError: 해당 id의 기록이 없음.
            HistoryPermissionError: 다른 사용자의 기록.
            RetrievalError: DB 연결 또는 쿼리 실패.
        """
        try:
            with self._connect() as conn:
                deleted = conn.execute(
                    "DELETE FROM search_history WHERE id::text = %s AND user_id = %s RETURNING id",
                    (entry_id, user_id),
                ).fetchone()
                owner = None
                if deleted is None:
                    row = conn.execute(
                        "SELECT user_id FROM search_history WHERE id::text = %s",
                        (entry_id,),
                    ).fetchone()
                    owner = row[0] if row else None
                conn.commit()
        except psycopg.Error as e:
            raise RetrievalError(f"history delete failed: {e}") from e

        if deleted is not None:
            return
        if owner is None:
            logger.info("삭제 대상 없음: entry_id=%s", entry_id, extra={"user_id": user_id})
            raise NotFoundError(f"search history entry {entry_id} not found")
        logger.warning(
            "타 사용자 기록 삭제 시도: entry_id=%s", entry_id,
            extra={"user_id": user_id, "entry_id": entry_id},
        )
        raise HistoryPermissionError("cannot delete another user's search history")

    def clear(self, user_id: str) -> int:
        """사용자의 모든 검색 기록을 삭제하고 삭제 건수를 반환한다."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "DELETE FROM search_history WHERE user_id = %s RETURNING id",
                    (user_id,),
                ).fetchall()
                conn.commit()
        except psycopg.Error as e:
            raise RetrievalError(f"history clear failed: {e}") from e
        return len(rows)

    def iter_all(self, batch_size: int = 1000) -> Iterator[SearchHistoryEntry]:
        """전체 기록을 오래된 순서로 순회한다. 인기 검색어 재계산용."""
        try:
            with self._connect() as conn:
                with conn.cursor(name="history_scan") as cur:
                    cur.itersize = batch_size
                    cur.execute(
                        f"SELECT {_ENTRY_COLUMNS} FROM search_history ORDER BY created_at, id"
                    )
                    for row in cur:
                        yield _row_to_entry(row)
        except psycopg.Error as e:
            raise RetrievalError(f"history scan failed: {e}") from e

    def delete_all(self) -> int:
        """모든 기록을 삭제한다. 테스트용."""
        with self._connect() as conn:
            rows = conn.execute("DELETE FROM search_history RETURNING id").fetchall()
            conn.commit()
        return len(rows)
