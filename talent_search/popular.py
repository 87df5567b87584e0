"""인기 검색어 클러스터링 - 임베딩 유사도 기반 쿼리 중복 제거.

같은 의도의 쿼리("wedding photographer", "photographer for weddings")를
하나의 클러스터로 묶고, 클러스터별 등장 횟수로 인기 검색어를 만든다.

- 클러스터의 대표 텍스트와 임베딩은 처음 들어온 멤버의 것을 쓴다 (centroid 이동 없음).
- 새 기록은 모든 클러스터와의 코사인 유사도 최대값이 threshold 이상이면 그 클러스터에 합류한다.
- 임베딩이 없는 기록은 정규화된 텍스트 완전 일치로만 합류한다.
- 임베딩 있는 기록이 어느 클러스터와도 threshold에 못 미치면, 임베딩 없는 같은 텍스트 클러스터에 합류한다.
- 같은 순서의 기록을 빈 상태에서 다시 넣으면 항상 같은 결과가 나온다.
"""

import logging
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from talent_search.config import settings
from talent_search.models import PopularSearch, SearchHistoryEntry

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


@dataclass
class QueryCluster:
    canonical: str
    key: str  # 정규화된 대표 텍스트
    seq: int  # 생성 순서 (동점 정렬용)
    embedding: np.ndarray | None = None
    count: int = 1


class PopularQueryClusterer:
    def __init__(self, threshold: float | None = None):
        self.threshold = settings.popular_threshold if threshold is None else threshold
        self._clusters: list[QueryCluster] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clusters)

    def add(self, entry: SearchHistoryEntry) -> QueryCluster | None:
        """기록 한 건을 클러스터에 반영한다. 빈 쿼리는 무시한다."""
        with self._lock:
            return self._assign(entry.query, entry.embedding)

    def rebuild(self, entries: Iterable[SearchHistoryEntry]) -> int:
        """클러스터를 비우고 기록 전체를 순서대로 다시 반영한다.

        Returns:
            생성된 클러스터 수.
        """
        with self._lock:
            self._clusters = []
            for entry in entries:
                self._assign(entry.query, entry.embedding)
            count = len(self._clusters)
        logger.info("인기 검색어 재계산 완료: clusters=%d", count)
        return count

    def _assign(self, text: str, embedding: list[float] | None) -> QueryCluster | None:
        key = normalize_text(text or "")
        if not key:
            return None

        vector = np.asarray(embedding, dtype=float) if embedding else None
        if vector is not None:
            best, best_sim = None, -1.0
            for cluster in self._clusters:
                if cluster.embedding is None or cluster.embedding.shape != vector.shape:
                    continue
                sim = cosine_similarity(vector, cluster.embedding)
                # 동일 유사도면 먼저 생긴 클러스터 유지
                if sim > best_sim:
                    best, best_sim = cluster, sim
            if best is not None and best_sim >= self.threshold:
                best.count += 1
                return best
            # 임베딩 없이 생긴 같은 텍스트 클러스터에 합류하고 벡터를 물려준다
            for cluster in self._clusters:
                if cluster.embedding is None and cluster.key == key:
                    cluster.embedding = vector
                    cluster.count += 1
                    return cluster
        else:
            for cluster in self._clusters:
                if cluster.key == key:
                    cluster.count += 1
                    return cluster

        cluster = QueryCluster(
            canonical=text.strip(),
            key=key,
            seq=len(self._clusters),
            embedding=vector,
        )
        self._clusters.append(cluster)
        return cluster

    def top_popular(
        self,
        n: int | None = None,
        query_embedding: list[float] | None = None,
    ) -> list[PopularSearch]:
        """등장 횟수 상위 n개 클러스터를 반환한다. 동점이면 먼저 생긴 클러스터 우선.

        query_embedding이 주어지면 각 클러스터 임베딩과의 유사도를 similarity에 채운다.
        "did you mean" 표시용이며 정렬에는 쓰지 않는다.
        """
        n = settings.popular_limit if n is None else n
        with self._lock:
            ordered = sorted(self._clusters, key=lambda c: (-c.count, c.seq))[:max(n, 0)]
            query_vec = np.asarray(query_embedding, dtype=float) if query_embedding else None

            results = []
            for cluster in ordered:
                similarity = None
                if (
                    query_vec is not None
                    and cluster.embedding is not None
                    and cluster.embedding.shape == query_vec.shape
                ):
                    similarity = round(cosine_similarity(query_vec, cluster.embedding), 4)
                results.append(PopularSearch(
                    query=cluster.canonical,
                    count=cluster.count,
                    similarity=similarity,
                ))
        return results

    def counts(self) -> list[int]:
        """클러스터별 등장 횟수 (생성 순서)."""
        with self._lock:
            return [cluster.count for cluster in self._clusters]
