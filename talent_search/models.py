"""검색 도메인 값 타입 - 쿼리, 콘텐츠 아이템, 프로젝트/크리에이터 점수, 검색 기록."""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from talent_search.config import settings
from talent_search.errors import ValidationError

CONTENT_TYPES = ("all", "images", "videos")
MODALITIES = ("image", "video", "document")

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class SearchQuery:
    role: str
    text: str = ""
    content_type: str = "all"
    subjects: tuple[str, ...] = ()
    styles: tuple[str, ...] = ()
    max_budget: float | None = None
    has_documents: bool = False
    documents_count: int | None = None
    page: int = 1
    limit: int = 5

    @property
    def uses_documents(self) -> bool:
        return self.has_documents or self.documents_count is not None

    @property
    def modalities(self) -> list[str]:
        """이 쿼리가 조회해야 하는 모달리티 목록."""
        active = []
        if self.content_type in ("all", "images"):
            active.append("image")
        if self.content_type in ("all", "videos"):
            active.append("video")
        if self.uses_documents:
            active.append("document")
        return active

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(cls, params: Mapping) -> "SearchQuery":
        """요청 파라미터(쿼리스트링 또는 JSON)를 검증하여 SearchQuery를 만든다.

        page/limit는 없거나 숫자가 아니면 기본값을 쓰고, 1 미만이면 거부한다.
        태그는 소문자로 정규화하고 정렬하여 동일 요청이 동일 쿼리가 되도록 한다.

        Raises:
            ValidationError: role 누락, 잘못된 content_type, 음수 예산 등.
        """
        role = params.get("role")
        if not isinstance(role, str) or not role.strip():
            raise ValidationError("role is required")

        text = params.get("q", params.get("query")) or ""
        if not isinstance(text, str):
            raise ValidationError("query must be a string")

        content_type = params.get("content_type", params.get("contentType")) or "all"
        if content_type not in CONTENT_TYPES:
            raise ValidationError(f"content_type must be one of {', '.join(CONTENT_TYPES)}")

        documents_count = _parse_optional_int(
            params.get("documents_count", params.get("documentsCount")), "documents_count",
        )
        if documents_count is not None and documents_count < 0:
            raise ValidationError("documents_count must be >= 0")

        max_budget = _parse_optional_float(
            params.get("max_budget", params.get("maxBudget")), "max_budget",
        )
        if max_budget is not None and max_budget < 0:
            raise ValidationError("max_budget must be >= 0")

        limit = _parse_positive(params.get("limit"), "limit", settings.default_limit)

        return cls(
            role=role.strip(),
            text=text.strip(),
            content_type=content_type,
            subjects=_parse_tags(params.get("subjects"), "subjects"),
            styles=_parse_tags(params.get("styles"), "styles"),
            max_budget=max_budget,
            has_documents=_parse_bool(
                params.get("has_documents", params.get("hasDocuments")), "has_documents",
            ),
            documents_count=documents_count,
            page=_parse_positive(params.get("page"), "page", settings.default_page),
            limit=min(limit, settings.max_limit),
        )


@dataclass(frozen=True)
class ContentItem:
    """검색 한 번에서 점수가 매겨진 포트폴리오 콘텐츠 한 건."""

    id: str
    modality: str  # "image", "video", "document"
    project_id: str
    creator_id: str
    score: float
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.modality,
            "project_id": self.project_id,
            "creator_id": self.creator_id,
            "score": self.score,
            **self.metadata,
        }


@dataclass
class ProjectScore:
    project_id: str
    creator_id: str
    vector_score: float
    video_score: float
    final_score: float
    document_score: float = 0.0
    title: str | None = None
    items: list[ContentItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.project_id,
            "title": self.title,
            "vector_score": self.vector_score,
            "video_score": self.video_score,
            "document_score": self.document_score,
            "final_score": self.final_score,
            "content": [item.to_dict() for item in self.items],
        }


@dataclass
class CreatorResult:
    creator_id: str
    score: float
    projects: list[ProjectScore] = field(default_factory=list)
    profile: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "profile": self.profile or {"id": self.creator_id},
            "score": self.score,
            "projects": [project.to_dict() for project in self.projects],
        }


@dataclass
class SearchResponse:
    results: list[CreatorResult]
    page: int
    limit: int
    total: int
    query: str
    content_type: str
    degraded: bool = False
    processed_query: str | None = None

    def to_dict(self) -> dict:
        data = {
            "results": [result.to_dict() for result in self.results],
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "query": self.query,
            "content_type": self.content_type,
            "degraded": self.degraded,
        }
        if self.processed_query is not None:
            data["processed_query"] = self.processed_query
        return data


@dataclass
class SearchHistoryEntry:
    id: str
    user_id: str
    query: str
    content_type: str
    created_at: datetime
    results_count: int
    embedding: list[float] | None = None

    def to_dict(self) -> dict:
        """API 응답용 dict. 임베딩은 포함하지 않는다."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "query": self.query,
            "content_type": self.content_type,
            "created_at": self.created_at.isoformat(),
            "results_count": self.results_count,
        }


@dataclass
class PopularSearch:
    query: str
    count: int
    similarity: float | None = None

    def to_dict(self) -> dict:
        data = {"query": self.query, "count": self.count}
        if self.similarity is not None:
            data["similarity"] = self.similarity
        return data


def _parse_positive(value, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        raise ValidationError(f"{name} must be >= 1")
    return number


def _parse_optional_int(value, name: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None


def _parse_optional_float(value, name: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number") from None
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number")
    return number


def _parse_bool(value, name: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ValidationError(f"{name} must be a boolean")


def _parse_tags(value, name: str) -> tuple[str, ...]:
    """쉼표 구분 문자열 또는 문자열 리스트를 정렬된 소문자 태그 튜플로 변환한다."""
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        raw = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        raw = list(value)
    else:
        raise ValidationError(f"{name} must be a list of strings")

    tags = set()
    for tag in raw:
        if not isinstance(tag, str):
            raise ValidationError(f"{name} must be a list of strings")
        if tag.strip():
            tags.add(tag.strip().lower())
    return tuple(sorted(tags))
