"""검색 엔진 - 쿼리 임베딩 → 후보 검색 → 점수 융합 → 페이지네이션."""

import logging
import threading
from dataclasses import dataclass

from talent_search.embedding import embed_query
from talent_search.errors import EmbeddingError
from talent_search.models import SearchQuery, SearchResponse
from talent_search.query_processor import process_query
from talent_search.ranking import paginate, rank
from talent_search.retriever import Retriever
from talent_search.vectorstore import ContentStore

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    """검색 응답과 기록용 부가 정보.

    embedding은 검색 기록 저장과 인기 검색어 클러스터링에 재사용된다.
    """

    response: SearchResponse
    embedding: list[float] | None = None


class SearchEngine:
    def __init__(
        self,
        store: ContentStore | None = None,
        retriever: Retriever | None = None,
    ):
        self._store = store or ContentStore()
        self._retriever = retriever or Retriever(store=self._store)

    def search(
        self,
        query: SearchQuery,
        cancel_event: threading.Event | None = None,
    ) -> SearchOutcome:
        """검색을 실행한다.

        임베딩 실패 시 필터 전용 검색으로 진행하고 degraded=True를 표시한다.
        저장소 장애(RetrievalError)는 그대로 전파하며 부분 결과는 반환하지 않는다.
        cancel_event가 설정되면 진행 중인 모달리티 조회를 취소하고 SearchCancelledError를 올린다.
        """
        logger.info(
            "검색 시작: role=%s, content_type=%s, page=%d, limit=%d",
            query.role, query.content_type, query.page, query.limit,
            extra={"query": query.text, "content_type": query.content_type},
        )

        processed = process_query(query.text)
        embedding: list[float] | None = None
        degraded = False
        try:
            embedding = embed_query(processed)
        except EmbeddingError as e:
            degraded = True
            if e.client_error:
                logger.info("쿼리 텍스트 없음, 필터 전용 검색: role=%s", query.role)
            else:
                logger.warning("임베딩 실패, 필터 전용 검색으로 전환: %s", e)

        items = self._retriever.retrieve(embedding, query, cancel_event=cancel_event)
        ranked = rank(items, query.content_type)
        page = paginate(ranked, query.page, query.limit)

        profiles = self._store.get_creators([r.creator_id for r in page])
        for result in page:
            result.profile = profiles.get(result.creator_id, {"id": result.creator_id})

        response = SearchResponse(
            results=page,
            page=query.page,
            limit=query.limit,
            total=len(ranked),
            query=query.text,
            content_type=query.content_type,
            degraded=degraded,
            processed_query=processed if processed != query.text else None,
        )
        logger.info(
            "검색 완료: total=%d, returned=%d, degraded=%s",
            response.total, len(page), degraded,
            extra={"results": response.total, "degraded": degraded},
        )
        return SearchOutcome(response=response, embedding=embedding)
