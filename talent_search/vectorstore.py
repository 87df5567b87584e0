"""pgvector 기반 콘텐츠 저장소 - 모달리티별 유사도 검색 및 하드 필터 푸시다운."""

import json
import logging
import threading

import psycopg
from pgvector.psycopg import register_vector

from talent_search.config import settings
from talent_search.errors import RetrievalError
from talent_search.models import ContentItem, SearchQuery

logger = logging.getLogger(__name__)

# 모달리티 → (테이블, 메타데이터 컬럼)
MEDIA_TABLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "image": ("images", ("url", "alt_text", "resolution")),
    "video": ("videos", ("url", "title", "description", "youtube_id", "vimeo_id")),
    "document": ("documents", ("url", "title")),
}

PROFILE_COLUMNS = ("id", "username", "location", "bio", "primary_role", "social_links", "work_email")


def build_filters(query: SearchQuery) -> tuple[list[str], list]:
    """쿼리의 하드 필터를 SQL WHERE 조건과 파라미터로 변환한다.

    top-K가 필터를 통과한 모집단 안에서 계산되도록 필터는 검색 SQL에 포함된다.
    별칭: c = creators, p = projects.
    """
    clauses = ["EXISTS (SELECT 1 FROM unnest(c.primary_role) AS r WHERE lower(r) = lower(%s))"]
    params: list = [query.role]

    if query.subjects:
        clauses.append("p.subjects && %s::text[]")
        params.append(list(query.subjects))
    if query.styles:
        clauses.append("p.styles && %s::text[]")
        params.append(list(query.styles))
    if query.max_budget is not None:
        # 예산 미기재 프로젝트는 상한 조건을 만족한다고 볼 수 없다
        clauses.append("p.budget IS NOT NULL AND p.budget <= %s")
        params.append(query.max_budget)
    if query.has_documents:
        clauses.append("EXISTS (SELECT 1 FROM documents d WHERE d.project_id = p.id)")
    if query.documents_count is not None:
        clauses.append("(SELECT count(*) FROM documents d WHERE d.project_id = p.id) >= %s")
        params.append(query.documents_count)

    return clauses, params


def build_search_sql(
    modality: str,
    query: SearchQuery,
    query_embedding: list[float] | None,
    top_k: int,
    score_threshold: float = 0.0,
) -> tuple[str, list]:
    """모달리티 하나에 대한 검색 SQL을 만든다.

    query_embedding이 None이면 (degraded 모드) 유사도 없이 필터만 적용하고
    creator, project, media id 순으로 정렬하여 score 0을 반환한다.
    """
    table, meta_columns = MEDIA_TABLES[modality]
    clauses, filter_params = build_filters(query)
    meta_sql = ", ".join(f"m.{col}" for col in meta_columns)

    params: list = []
    if query_embedding is not None:
        vector = str(query_embedding)
        # cosine distance = 1 - cosine_similarity
        score_sql = "1 - (m.embedding <=> %s::vector)"
        params.append(vector)
        clauses = ["m.embedding IS NOT NULL", *clauses,
                   "1 - (m.embedding <=> %s::vector) >= %s"]
        params.extend(filter_params)
        params.extend([vector, score_threshold])
        order_sql = "m.embedding <=> %s::vector, m.id"
        params.append(vector)
    else:
        score_sql = "0.0"
        params.extend(filter_params)
        # 랭킹의 동점 정렬(creator id)과 같은 순서로 top-K 구간을 자른다
        order_sql = "c.id, p.id, m.id"

    params.append(top_k)
    sql = f"""
        SELECT m.id::text, p.id::text, c.id::text, p.title,
               {score_sql} AS score, {meta_sql}
        FROM {table} m
        JOIN projects p ON p.id = m.project_id
        JOIN creators c ON c.id = p.creator_id
        WHERE {" AND ".join(clauses)}
        ORDER BY {order_sql}
        LIMIT %s
    """
    return sql, params


class ContentStore:
    def __init__(self, conninfo: str | None = None):
        self._conninfo = conninfo or settings.database_url
        # search()가 실행 중인 연결. cancel()이 서버 측 쿼리 중단에 쓴다.
        self._active: set[psycopg.Connection] = set()
        self._active_lock = threading.Lock()

    def _connect(self) -> psycopg.Connection:
        conn = psycopg.connect(self._conninfo)
        register_vector(conn)
        return conn

    def cancel(self) -> None:
        """실행 중인 모든 검색 쿼리에 취소 요청을 보낸다.

        취소된 쿼리는 해당 search() 호출에서 RetrievalError로 끝난다.
        """
        with self._active_lock:
            active = list(self._active)
        for conn in active:
            try:
                conn.cancel()
            except psycopg.Error as e:
                logger.warning("쿼리 취소 요청 실패: %s", e)

    def search(
        self,
        modality: str,
        query_embedding: list[float] | None,
        query: SearchQuery,
        top_k: int = 200,
        score_threshold: float = 0.0,
    ) -> list[ContentItem]:
        """필터를 통과한 콘텐츠 중 유사도 상위 top_k개를 반환한다.

        Raises:
            RetrievalError: DB 연결 또는 쿼리 실패 (취소 포함).
        """
        _, meta_columns = MEDIA_TABLES[modality]
        sql, params = build_search_sql(modality, query, query_embedding, top_k, score_threshold)

        try:
            with self._connect() as conn:
                with self._active_lock:
                    self._active.add(conn)
                try:
                    rows = conn.execute(sql, params).fetchall()
                finally:
                    with self._active_lock:
                        self._active.discard(conn)
        except psycopg.Error as e:
            raise RetrievalError(f"{modality} search failed: {e}") from e

        items = []
        for row in rows:
            metadata = {"project_title": row[3]}
            for col, value in zip(meta_columns, row[5:]):
                if value is not None:
                    metadata[col] = value
            items.append(ContentItem(
                id=row[0],
                modality=modality,
                project_id=row[1],
                creator_id=row[2],
                score=min(max(float(row[4]), 0.0), 1.0),
                metadata=metadata,
            ))
        return items

    def get_creators(self, creator_ids: list[str]) -> dict[str, dict]:
        """크리에이터 프로필 스냅샷을 id → dict로 반환한다."""
        if not creator_ids:
            return {}
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id::text, username, location, bio, primary_role,
                           social_links, work_email
                    FROM creators
                    WHERE id::text = ANY(%s)
                    """,
                    (list(creator_ids),),
                ).fetchall()
        except psycopg.Error as e:
            raise RetrievalError(f"creator fetch failed: {e}") from e
        return {row[0]: dict(zip(PROFILE_COLUMNS, row)) for row in rows}

    # ── 시드 데이터 적재 ───────────────────────────────────────

    def insert_creator(self, creator: dict) -> str:
        with self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO creators (id, username, location, bio, primary_role, social_links, work_email)
                VALUES (COALESCE(%s::uuid, gen_random_uuid()), %s, %s, %s, %s, %s::jsonb, %s)
                RETURNING id::text
                """,
                (
                    creator.get("id"),
                    creator["username"],
                    creator.get("location"),
                    creator.get("bio"),
                    creator.get("primary_role", []),
                    json.dumps(creator.get("social_links", {})),
                    creator.get("work_email"),
                ),
            ).fetchone()
            conn.commit()
            return row[0]

    def insert_project(self, creator_id: str, project: dict) -> str:
        with self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO projects (id, creator_id, title, description, subjects, styles, budget)
                VALUES (COALESCE(%s::uuid, gen_random_uuid()), %s, %s, %s, %s, %s, %s)
                RETURNING id::text
                """,
                (
                    project.get("id"),
                    creator_id,
                    project["title"],
                    project.get("description"),
                    [s.lower() for s in project.get("subjects", [])],
                    [s.lower() for s in project.get("styles", [])],
                    project.get("budget"),
                ),
            ).fetchone()
            conn.commit()
            return row[0]

    def insert_media(self, modality: str, project_id: str, creator_id: str, item: dict) -> str:
        """이미지/영상/문서 한 건을 저장한다. item에는 embedding이 포함되어야 한다."""
        table, meta_columns = MEDIA_TABLES[modality]
        columns = ["project_id", "creator_id", *meta_columns, "embedding"]
        values = [project_id, creator_id, *(item.get(col) for col in meta_columns),
                  str(item["embedding"])]
        placeholders = ", ".join(["%s"] * (len(columns) - 1) + ["%s::vector"])

        with self._connect() as conn:
            row = conn.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id::text",
                values,
            ).fetchone()
            conn.commit()
            return row[0]

    def delete_all(self) -> None:
        """모든 콘텐츠를 삭제한다. 테스트용."""
        with self._connect() as conn:
            conn.execute("TRUNCATE creators, projects, images, videos, documents CASCADE")
            conn.commit()
