"""후보 콘텐츠 검색 - 모달리티별 병렬 조회."""

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from talent_search.config import settings
from talent_search.errors import RetrievalError, SearchCancelledError
from talent_search.models import ContentItem, SearchQuery
from talent_search.vectorstore import ContentStore

logger = logging.getLogger(__name__)


class Retriever:
    def __init__(self, store: ContentStore | None = None):
        self._store = store or ContentStore()

    def retrieve(
        self,
        query_embedding: list[float] | None,
        query: SearchQuery,
        top_k: int | None = None,
        score_threshold: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[ContentItem]:
        """활성 모달리티마다 한 번씩 저장소를 조회하여 아이템을 합친다.

        한 모달리티라도 실패하면 나머지 조회를 취소하고 RetrievalError를 올린다.
        부분 결과는 반환하지 않는다.

        Args:
            query_embedding: 쿼리 벡터. None이면 필터 전용 조회.
            query: 검증된 검색 쿼리 (하드 필터 포함).
            top_k: 모달리티당 최대 아이템 수.
            score_threshold: 최소 유사도.
            cancel_event: 설정되면 대기 중인 조회를 취소하고 실행 중인 쿼리를 중단한다.

        Raises:
            RetrievalError: 저장소 조회 실패.
            SearchCancelledError: cancel_event로 취소됨.
        """
        modalities = query.modalities
        if not modalities:
            return []
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledError("search cancelled before retrieval")

        top_k = top_k or settings.retriever_top_k
        if score_threshold is None:
            score_threshold = settings.score_threshold
        # cancel_event가 없으면 폴링 없이 완료/실패까지 대기
        poll = settings.disconnect_poll_interval if cancel_event is not None else None

        executor = ThreadPoolExecutor(max_workers=len(modalities))
        try:
            futures = {
                executor.submit(
                    self._store.search,
                    modality,
                    query_embedding,
                    query,
                    top_k,
                    score_threshold,
                ): modality
                for modality in modalities
            }
            while True:
                done, pending = wait(futures, timeout=poll, return_when=FIRST_EXCEPTION)
                if cancel_event is not None and cancel_event.is_set():
                    self._cancel(pending)
                    raise SearchCancelledError("search cancelled by caller")
                if not pending or any(f.exception() is not None for f in done):
                    break
            for future in pending:
                future.cancel()

            failed = [f for f in done if f.exception() is not None]
            if failed:
                error = failed[0].exception()
                logger.error("%s 검색 실패: %s", futures[failed[0]], error)
                if isinstance(error, RetrievalError):
                    raise error
                raise RetrievalError(f"{futures[failed[0]]} search failed: {error}") from error

            # 모달리티 순서를 고정해야 결과가 결정적이다
            items: list[ContentItem] = []
            by_modality = {modality: future for future, modality in futures.items()}
            for modality in modalities:
                items.extend(by_modality[modality].result())
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug("후보 %d건 조회 (modalities=%s)", len(items), ",".join(modalities))
        return items

    def _cancel(self, pending) -> None:
        for future in pending:
            future.cancel()
        # 이미 실행 중인 쿼리는 서버 측에서 중단한다
        self._store.cancel()
        logger.info("검색 취소: 대기 %d건, 실행 중 쿼리 중단 요청", len(pending))
