"""공용 픽스처 - DB 의존 테스트 스킵 처리 및 콘텐츠 아이템 헬퍼."""

import functools

import psycopg
import pytest

from talent_search.config import settings
from talent_search.models import ContentItem


@functools.lru_cache(maxsize=1)
def db_available() -> bool:
    """PostgreSQL이 떠 있고 스키마가 초기화되어 있는지 확인한다."""
    try:
        with psycopg.connect(settings.database_url, connect_timeout=2) as conn:
            conn.execute("SELECT 1 FROM search_history LIMIT 0")
            conn.execute("SELECT 1 FROM images LIMIT 0")
    except psycopg.Error:
        return False
    return True


@pytest.fixture()
def requires_db():
    if not db_available():
        pytest.skip("PostgreSQL + pgvector 미실행 (TALENT_DB_* 설정 후 python scripts/init_db.py)")


def make_item(
    item_id: str,
    creator_id: str,
    project_id: str,
    score: float,
    modality: str = "image",
    **metadata,
) -> ContentItem:
    return ContentItem(
        id=item_id,
        modality=modality,
        project_id=project_id,
        creator_id=creator_id,
        score=score,
        metadata=metadata,
    )
