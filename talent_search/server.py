"""FastAPI 서버 - 크리에이터 검색, 검색 기록, 인기 검색어 API."""

import asyncio
import logging
import math
import threading
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from talent_search.config import settings
from talent_search.embedding import embed_query
from talent_search.errors import (
    EmbeddingError,
    HistoryPermissionError,
    NotFoundError,
    RetrievalError,
    SearchCancelledError,
    ValidationError,
)
from talent_search.history import SearchHistoryStore
from talent_search.logging_config import setup_logging_from_env
from talent_search.models import SearchQuery
from talent_search.popular import PopularQueryClusterer
from talent_search.search import SearchEngine

logger = logging.getLogger(__name__)

# 프로세스 내 유일한 writer. 모든 접근은 내부 락을 거친다.
clusterer = PopularQueryClusterer()


def rebuild_popular() -> None:
    """검색 기록 전체로 인기 검색어 클러스터를 다시 만든다."""
    try:
        clusterer.rebuild(SearchHistoryStore().iter_all())
    except RetrievalError:
        logger.warning("인기 검색어 재계산 실패, 빈 상태로 시작", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """서버 시작 시 로깅을 설정하고 인기 검색어를 재계산한다."""
    setup_logging_from_env()
    logger.info("Talent Search 시작 (embed_model=%s)", settings.embed_model)
    rebuild_popular()
    yield
    logger.info("Talent Search 종료")


app = FastAPI(
    title="Talent Search",
    description="포트폴리오 기반 크리에이터 검색 엔진",
    version="0.1.0",
    lifespan=lifespan,
)


def _require_user(x_user_id: str | None) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


@app.get("/health")
async def health():
    """헬스체크 엔드포인트."""
    return {
        "status": "ok",
        "embed_model": settings.embed_model,
        "embed_dim": settings.embed_dim,
    }


@app.get("/search")
async def search(
    request: Request,
    background_tasks: BackgroundTasks,
    x_user_id: str | None = Header(None),
):
    """크리에이터를 검색한다.

    subjects/styles는 쉼표 구분 또는 반복 파라미터 모두 허용한다.
    검색은 스레드풀에서 실행되며, 클라이언트가 연결을 끊으면 진행 중인 모달리티 조회를 취소한다.
    로그인 사용자의 검색은 응답 이후 백그라운드에서 기록된다.
    """
    params = dict(request.query_params)
    for name in ("subjects", "styles"):
        values = request.query_params.getlist(name)
        if values:
            params[name] = ",".join(values)

    try:
        query = SearchQuery.from_params(params)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    cancel_event = threading.Event()
    task = asyncio.ensure_future(run_in_threadpool(SearchEngine().search, query, cancel_event))
    try:
        while not task.done():
            await asyncio.wait({task}, timeout=settings.disconnect_poll_interval)
            if not task.done() and await request.is_disconnected():
                cancel_event.set()
                break
        outcome = await task
    except asyncio.CancelledError:
        cancel_event.set()
        raise
    except SearchCancelledError as e:
        logger.info("클라이언트 연결 종료로 검색 취소: role=%s", query.role, extra={"user_id": x_user_id})
        raise HTTPException(status_code=499, detail="Client closed request") from e
    except RetrievalError as e:
        logger.exception("검색 실패: role=%s", query.role)
        raise HTTPException(status_code=503, detail="Search is temporarily unavailable") from e

    if x_user_id:
        background_tasks.add_task(
            record_search,
            x_user_id,
            query.text,
            query.content_type,
            outcome.response.total,
            outcome.embedding,
        )

    return outcome.response.to_dict()


def record_search(
    user_id: str,
    query_text: str,
    content_type: str,
    results_count: int,
    embedding: list[float] | None,
):
    """검색 기록을 저장하고 인기 검색어에 반영한다.

    BackgroundTasks에서 호출된다. 실패는 로그만 남기고 검색 응답에 영향을 주지 않는다.
    """
    try:
        entry = SearchHistoryStore().record(
            user_id, query_text, content_type, results_count, embedding,
        )
    except Exception:
        logger.exception("검색 기록 저장 실패", extra={"user_id": user_id, "query": query_text})
        return

    clusterer.add(entry)


@app.get("/search/history")
def get_history(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    x_user_id: str | None = Header(None),
):
    """사용자의 검색 기록을 최신순으로 조회한다."""
    user_id = _require_user(x_user_id)
    limit = min(limit or settings.history_page_size, settings.max_limit)

    try:
        entries, total = SearchHistoryStore().list(user_id, page=page, limit=limit)
    except RetrievalError as e:
        logger.exception("검색 기록 조회 실패", extra={"user_id": user_id})
        raise HTTPException(status_code=503, detail="Search history is temporarily unavailable") from e

    return {
        "history": [entry.to_dict() for entry in entries],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@app.delete("/search/history/{entry_id}")
def delete_history_entry(entry_id: str, x_user_id: str | None = Header(None)):
    """검색 기록 한 건을 삭제한다."""
    user_id = _require_user(x_user_id)

    try:
        SearchHistoryStore().delete_one(user_id, entry_id)
    except HistoryPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except RetrievalError as e:
        logger.exception("검색 기록 삭제 실패: entry_id=%s", entry_id, extra={"user_id": user_id})
        raise HTTPException(status_code=503, detail="Search history is temporarily unavailable") from e

    return {"message": "Search history entry deleted successfully"}


@app.delete("/search/history")
def clear_history(x_user_id: str | None = Header(None)):
    """사용자의 검색 기록을 모두 삭제한다."""
    user_id = _require_user(x_user_id)
    try:
        deleted = SearchHistoryStore().clear(user_id)
    except RetrievalError as e:
        logger.exception("검색 기록 전체 삭제 실패", extra={"user_id": user_id})
        raise HTTPException(status_code=503, detail="Search history is temporarily unavailable") from e

    logger.info("검색 기록 전체 삭제: deleted=%d", deleted, extra={"user_id": user_id})
    return {"message": "Search history cleared successfully", "deleted": deleted}


@app.get("/search/popular")
def popular_searches(
    limit: int | None = Query(None, ge=1),
    q: str | None = None,
):
    """인기 검색어를 조회한다. q가 있으면 각 검색어와의 유사도를 함께 반환한다."""
    query_embedding = None
    if q:
        try:
            query_embedding = embed_query(q)
        except EmbeddingError as e:
            logger.info("인기 검색어 유사도 생략: %s", e)

    searches = clusterer.top_popular(limit, query_embedding=query_embedding)
    return {"searches": [search.to_dict() for search in searches]}
