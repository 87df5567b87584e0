"""임베딩 게이트웨이 - Ollama 임베딩 모델 호출 및 실패 처리."""

import logging

import httpx

from talent_search.config import settings
from talent_search.errors import EmbeddingError

logger = logging.getLogger(__name__)


def embed(texts: str | list[str], timeout: float = 120.0) -> list[list[float]]:
    """텍스트를 벡터로 변환한다. 적재 스크립트의 배치 임베딩용.

    Args:
        texts: 단일 문자열 또는 문자열 리스트.
        timeout: 요청 타임아웃(초).

    Returns:
        임베딩 벡터 리스트. 단일 입력이어도 리스트로 반환.
    """
    if isinstance(texts, str):
        texts = [texts]

    resp = httpx.post(
        f"{settings.ollama_base_url}/api/embed",
        json={"model": settings.embed_model, "input": texts},
        timeout=timeout,
    )
    resp.raise_for_status()
    return resp.json()["embeddings"]


def normalize_query(text: str) -> str:
    """임베딩 전에 쿼리를 정규화한다 (trim + 소문자)."""
    return text.strip().lower()


def embed_query(text: str) -> list[float]:
    """검색 쿼리 하나를 임베딩한다.

    빈 문자열은 외부 호출 없이 client_error로 거부한다. 타임아웃, non-2xx,
    차원이 맞지 않는 응답은 모두 EmbeddingError로 감싸서 올린다.

    Raises:
        EmbeddingError: 임베딩을 얻지 못한 경우.
    """
    normalized = normalize_query(text or "")
    if not normalized:
        raise EmbeddingError("empty query text", client_error=True)

    try:
        vectors = embed(normalized, timeout=settings.embed_timeout)
    except httpx.TimeoutException as e:
        raise EmbeddingError(f"embedding request timed out after {settings.embed_timeout}s") from e
    except httpx.HTTPError as e:
        raise EmbeddingError(f"embedding request failed: {e}") from e
    except (KeyError, TypeError, ValueError) as e:
        raise EmbeddingError(f"malformed embedding response: {e!r}") from e

    if not isinstance(vectors, list) or not vectors:
        raise EmbeddingError("malformed embedding response: no vectors")

    vector = vectors[0]
    if not isinstance(vector, list) or len(vector) != settings.embed_dim:
        raise EmbeddingError(
            f"malformed embedding response: expected {settings.embed_dim} dims"
        )
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in vector):
        raise EmbeddingError("malformed embedding response: non-numeric values")

    return [float(v) for v in vector]
