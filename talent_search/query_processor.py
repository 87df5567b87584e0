"""검색 쿼리 리라이트 - LLM으로 오타 교정 및 관련 용어 1개 보강."""

import logging
import re

import httpx

from talent_search.config import settings

logger = logging.getLogger(__name__)

REWRITE_PROMPT = """\
Process this search query to enhance its relevance for searching creative \
professionals based on their style, expertise and work.

Rules:
1. KEEP ALL ORIGINAL QUERY TERMS intact.
2. Add at most one highly relevant term, only if necessary.
3. Do not replace or remove any original terms.
4. Fix misspellings but preserve intentional slang and creative terms.
5. Keep grammar natural, don't over-formalize.
6. Avoid generic terms like portfolio, projects, images, website, photographers.
7. Avoid names of apps, platforms, tools or people unless explicitly mentioned.
8. Respond with the processed query only. No other text.

Original query: "{query}"
"""

# LLM이 덧붙이기 쉬운 일반 접미사
GENERIC_SUFFIX_RE = re.compile(r"\s+(portfolio|projects?|images?)\b", re.IGNORECASE)


def _terms(text: str) -> list[str]:
    return re.sub(r"[^\w\s]", " ", text.lower()).split()


def clean_rewrite(original: str, rewritten: str) -> str:
    """LLM 응답을 정리하고 빠진 원본 용어를 다시 붙인다."""
    processed = re.sub(r"[^\w\s]", " ", rewritten.strip())
    processed = re.sub(r"\s+", " ", processed)
    processed = GENERIC_SUFFIX_RE.sub("", processed).strip()

    present = set(processed.lower().split())
    for term in _terms(original):
        if term not in present:
            processed = f"{processed} {term}".strip()
            present.add(term)
    return processed


def process_query(text: str) -> str:
    """쿼리를 리라이트한다. 비활성화되어 있거나 실패하면 원본을 그대로 반환한다."""
    if not settings.query_rewrite_enabled or not text.strip():
        return text

    try:
        resp = httpx.post(
            f"{settings.ollama_base_url}/api/generate",
            json={
                "model": settings.llm_model,
                "prompt": REWRITE_PROMPT.format(query=text),
                "stream": False,
                "options": {"temperature": 0.0},
            },
            timeout=settings.query_rewrite_timeout,
        )
        resp.raise_for_status()
        rewritten = resp.json()["response"]
    except (httpx.HTTPError, KeyError, ValueError):
        logger.warning("쿼리 리라이트 실패, 원본 사용: %s", text, exc_info=True)
        return text

    if not isinstance(rewritten, str) or not rewritten.strip():
        return text
    return clean_rewrite(text, rewritten)
