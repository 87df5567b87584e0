"""콘텐츠 저장소 테스트 - SQL 필터 생성 및 pgvector 유사도 검색.

NOTE: TestContentStoreSearch는 PostgreSQL + pgvector가 실행 중이어야 합니다.
      TALENT_DB_* 설정 후 python scripts/init_db.py
      DB가 없으면 자동으로 건너뜁니다.
"""

from unittest.mock import MagicMock, patch

import psycopg
import pytest

from talent_search.errors import RetrievalError
from talent_search.models import SearchQuery
from talent_search.vectorstore import ContentStore, build_filters, build_search_sql


class TestBuildFilters:
    def test_role_always_filtered(self):
        clauses, params = build_filters(SearchQuery(role="Photographer"))

        assert len(clauses) == 1
        assert "primary_role" in clauses[0]
        assert params == ["Photographer"]

    def test_all_filters(self):
        query = SearchQuery(
            role="Photographer",
            subjects=("weddings",),
            styles=("film", "moody"),
            max_budget=1500.0,
            has_documents=True,
            documents_count=2,
        )

        clauses, params = build_filters(query)
        sql = " AND ".join(clauses)

        assert "p.subjects && %s::text[]" in sql
        assert "p.styles && %s::text[]" in sql
        assert "p.budget IS NOT NULL AND p.budget <= %s" in sql
        assert "EXISTS (SELECT 1 FROM documents" in sql
        assert "count(*) FROM documents" in sql
        assert params == ["Photographer", ["weddings"], ["film", "moody"], 1500.0, 2]
        assert sql.count("%s") == len(params)

    def test_zero_budget_is_still_a_filter(self):
        clauses, params = build_filters(SearchQuery(role="x", max_budget=0.0))

        assert any("budget" in c for c in clauses)
        assert 0.0 in params


class TestBuildSearchSql:
    def test_vector_mode_params_match_placeholders(self):
        query = SearchQuery(role="Photographer", subjects=("weddings",))
        vec = [0.5] * 4

        sql, params = build_search_sql("image", query, vec, top_k=20, score_threshold=0.3)

        assert sql.count("%s") == len(params)
        assert "FROM images m" in sql
        assert "ORDER BY m.embedding <=> %s::vector, m.id" in sql
        assert params[0] == str(vec)
        assert params[-1] == 20
        assert 0.3 in params

    def test_filters_are_inside_the_limited_query(self):
        """필터가 LIMIT 이전 WHERE 절에 있어야 top-K가 필터 통과 집합에서 계산된다."""
        sql, _ = build_search_sql(
            "video", SearchQuery(role="x", max_budget=10.0), [0.1] * 4, top_k=5,
        )

        assert sql.index("p.budget") < sql.index("LIMIT")
        assert sql.index("WHERE") < sql.index("p.budget")

    def test_degraded_mode_orders_by_creator_then_id_with_zero_score(self):
        sql, params = build_search_sql("document", SearchQuery(role="x"), None, top_k=5)

        assert "0.0 AS score" in sql
        assert "<=>" not in sql
        assert "ORDER BY c.id, p.id, m.id" in sql
        assert params == ["x", 5]


class TestQueryCancel:
    def test_search_registers_connection_while_running(self):
        store = ContentStore(conninfo="unused")
        conn = MagicMock()
        conn.__enter__.return_value = conn
        seen_active = []

        def execute(sql, params):
            seen_active.append(conn in store._active)
            cursor = MagicMock()
            cursor.fetchall.return_value = []
            return cursor

        conn.execute.side_effect = execute

        with patch.object(store, "_connect", return_value=conn):
            assert store.search("image", None, SearchQuery(role="x"), top_k=5) == []

        assert seen_active == [True]
        assert not store._active

    def test_cancel_sends_cancel_to_running_queries(self):
        store = ContentStore(conninfo="unused")
        running, failing = MagicMock(), MagicMock()
        failing.cancel.side_effect = psycopg.OperationalError("gone")
        store._active.update({running, failing})

        store.cancel()

        running.cancel.assert_called_once()
        failing.cancel.assert_called_once()

    def test_cancelled_query_raises_retrieval_error(self):
        store = ContentStore(conninfo="unused")
        conn = MagicMock()
        conn.__enter__.return_value = conn
        conn.execute.side_effect = psycopg.errors.QueryCanceled("canceling statement")

        with patch.object(store, "_connect", return_value=conn):
            with pytest.raises(RetrievalError):
                store.search("video", None, SearchQuery(role="x"), top_k=5)

        assert not store._active


@pytest.fixture()
def store(requires_db):
    cs = ContentStore()
    cs.delete_all()
    yield cs
    cs.delete_all()


def _unit(index: int, dim: int = 768) -> list[float]:
    vec = [0.0] * dim
    vec[index] = 1.0
    return vec


@pytest.fixture()
def seeded(store):
    """역할/예산/태그가 다른 크리에이터 세 명."""
    near = [0.0] * 768
    near[0], near[1] = 0.9, 0.1

    photographer = store.insert_creator({"username": "ana", "primary_role": ["Photographer"]})
    illustrator = store.insert_creator({"username": "ben", "primary_role": ["Illustrator"]})
    pricey = store.insert_creator({"username": "cai", "primary_role": ["photographer"]})

    p1 = store.insert_project(photographer, {"title": "Wedding", "subjects": ["Weddings"], "budget": 800})
    p2 = store.insert_project(illustrator, {"title": "Poster", "subjects": ["Weddings"], "budget": 100})
    p3 = store.insert_project(pricey, {"title": "Gala", "subjects": ["Events"], "budget": 5000})

    store.insert_media("image", p1, photographer, {"alt_text": "bride", "embedding": near})
    store.insert_media("image", p2, illustrator, {"alt_text": "poster", "embedding": _unit(0)})
    store.insert_media("image", p3, pricey, {"alt_text": "gala", "embedding": _unit(0)})
    store.insert_media("video", p1, photographer, {"title": "first dance", "embedding": _unit(1)})
    store.insert_media("document", p1, photographer, {"title": "rate card", "embedding": _unit(2)})

    return {"photographer": photographer, "illustrator": illustrator, "pricey": pricey}


class TestContentStoreSearch:
    def test_role_filter_case_insensitive(self, seeded, store):
        items = store.search("image", _unit(0), SearchQuery(role="PHOTOGRAPHER"), top_k=10)

        creators = {i.creator_id for i in items}
        assert creators == {seeded["photographer"], seeded["pricey"]}

    def test_filtered_item_never_returned_even_if_best_match(self, seeded, store):
        query = SearchQuery(role="Photographer", max_budget=1000.0)

        items = store.search("image", _unit(0), query, top_k=1)

        # illustrator/pricey의 이미지가 score 1.0이지만 필터에 걸린다
        assert len(items) == 1
        assert items[0].creator_id == seeded["photographer"]

    def test_subject_overlap(self, seeded, store):
        query = SearchQuery(role="Photographer", subjects=("events",))

        items = store.search("image", _unit(0), query, top_k=10)

        assert [i.creator_id for i in items] == [seeded["pricey"]]

    def test_results_ordered_by_similarity(self, seeded, store):
        items = store.search("image", _unit(0), SearchQuery(role="Photographer"), top_k=10)

        assert items[0].score >= items[-1].score
        assert all(0.0 <= i.score <= 1.0 for i in items)

    def test_score_threshold(self, seeded, store):
        items = store.search(
            "image", _unit(0), SearchQuery(role="Photographer"), top_k=10, score_threshold=0.999,
        )

        assert [i.creator_id for i in items] == [seeded["pricey"]]

    def test_document_filters(self, seeded, store):
        query = SearchQuery(role="Photographer", has_documents=True)

        items = store.search("image", _unit(0), query, top_k=10)

        assert {i.creator_id for i in items} == {seeded["photographer"]}

    def test_degraded_search_returns_zero_scores(self, seeded, store):
        items = store.search("image", None, SearchQuery(role="Photographer"), top_k=10)

        assert len(items) == 2
        assert all(i.score == 0.0 for i in items)
        assert [i.creator_id for i in items] == sorted(i.creator_id for i in items)

    def test_degraded_window_keeps_lowest_creator_ids(self, seeded, store):
        [item] = store.search("image", None, SearchQuery(role="Photographer"), top_k=1)

        assert item.creator_id == min(seeded["photographer"], seeded["pricey"])

    def test_metadata_carried(self, seeded, store):
        [item] = store.search("video", _unit(1), SearchQuery(role="Photographer"), top_k=10)

        assert item.metadata["title"] == "first dance"
        assert item.metadata["project_title"] == "Wedding"

    def test_get_creators(self, seeded, store):
        profiles = store.get_creators([seeded["photographer"]])

        assert profiles[seeded["photographer"]]["username"] == "ana"
        assert profiles[seeded["photographer"]]["primary_role"] == ["Photographer"]
