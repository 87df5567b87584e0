"""DB 스키마 초기화 - pgvector 확장, 콘텐츠/검색 기록 테이블 및 인덱스 생성."""

import psycopg

from talent_search.config import settings

SCHEMA_SQL = f"""
CREATE EXTENSION IF NOT EXISTS vector;
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS creators (
    id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    username     VARCHAR(100) NOT NULL,
    location     VARCHAR(255),
    bio          TEXT,
    primary_role TEXT[] NOT NULL DEFAULT '{{}}',
    social_links JSONB NOT NULL DEFAULT '{{}}',
    work_email   VARCHAR(255),
    created_at   TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS projects (
    id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    creator_id  UUID NOT NULL REFERENCES creators (id) ON DELETE CASCADE,
    title       VARCHAR(255) NOT NULL,
    description TEXT,
    subjects    TEXT[] NOT NULL DEFAULT '{{}}',
    styles      TEXT[] NOT NULL DEFAULT '{{}}',
    budget      NUMERIC,
    created_at  TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS images (
    id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    project_id  UUID NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    creator_id  UUID NOT NULL REFERENCES creators (id) ON DELETE CASCADE,
    url         TEXT,
    alt_text    TEXT,
    resolution  VARCHAR(50),
    embedding   vector({settings.embed_dim})
);

CREATE TABLE IF NOT EXISTS videos (
    id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    project_id  UUID NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    creator_id  UUID NOT NULL REFERENCES creators (id) ON DELETE CASCADE,
    url         TEXT,
    title       TEXT,
    description TEXT,
    youtube_id  VARCHAR(50),
    vimeo_id    VARCHAR(50),
    embedding   vector({settings.embed_dim})
);

CREATE TABLE IF NOT EXISTS documents (
    id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    project_id  UUID NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    creator_id  UUID NOT NULL REFERENCES creators (id) ON DELETE CASCADE,
    url         TEXT,
    title       TEXT,
    embedding   vector({settings.embed_dim})
);

CREATE TABLE IF NOT EXISTS search_history (
    id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id       VARCHAR(255) NOT NULL,
    query         TEXT NOT NULL,
    content_type  VARCHAR(20) NOT NULL DEFAULT 'all',
    results_count INTEGER NOT NULL DEFAULT 0,
    embedding     vector({settings.embed_dim}),
    created_at    TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
);

-- 미디어 임베딩에는 ANN 인덱스를 두지 않는다. ANN 인덱스는 필터를 인덱스 스캔 이후에
-- 적용하므로 필터 통과 행이 top-K보다 적게 반환될 수 있다.

CREATE INDEX IF NOT EXISTS idx_projects_creator ON projects (creator_id);
CREATE INDEX IF NOT EXISTS idx_projects_subjects ON projects USING gin (subjects);
CREATE INDEX IF NOT EXISTS idx_projects_styles ON projects USING gin (styles);
CREATE INDEX IF NOT EXISTS idx_documents_project ON documents (project_id);
CREATE INDEX IF NOT EXISTS idx_search_history_user
    ON search_history (user_id, created_at DESC);
"""


def init_db() -> None:
    with psycopg.connect(settings.database_url) as conn:
        conn.execute(SCHEMA_SQL)
        conn.commit()
    print("DB schema initialized successfully.")


if __name__ == "__main__":
    init_db()
