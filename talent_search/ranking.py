"""점수 융합 및 랭킹.

아이템 → 프로젝트 → 크리에이터 순서로 점수를 올린다.

- 프로젝트: 모달리티별 최대 유사도를 구하고 content_type에 따라 융합한다.
  "all"이면 이미지/영상 중 큰 값을 쓴다. 평균을 내면 한 모달리티만 가진
  크리에이터(영상이 없는 사진작가 등)가 불리해진다.
- 크리에이터: 프로젝트 final_score의 최대값 (best-work-forward).
- 정렬: 점수 내림차순, 동점이면 id 오름차순. 저장소 반환 순서와 무관하게
  항상 같은 순서가 나온다.
"""

from talent_search.models import ContentItem, CreatorResult, ProjectScore


def fuse_scores(vector_score: float, video_score: float, content_type: str) -> float:
    """프로젝트의 이미지/영상 점수를 final_score로 합친다."""
    if content_type == "images":
        return vector_score
    if content_type == "videos":
        return video_score
    return max(vector_score, video_score)


def score_projects(items: list[ContentItem], content_type: str = "all") -> list[ProjectScore]:
    """아이템을 프로젝트별로 묶어 ProjectScore 리스트를 만든다."""
    grouped: dict[str, list[ContentItem]] = {}
    for item in items:
        grouped.setdefault(item.project_id, []).append(item)

    projects = []
    for project_id, project_items in grouped.items():
        best = {"image": 0.0, "video": 0.0, "document": 0.0}
        for item in project_items:
            if item.score > best[item.modality]:
                best[item.modality] = item.score

        ordered = sorted(project_items, key=lambda i: (-i.score, i.modality, i.id))
        projects.append(ProjectScore(
            project_id=project_id,
            creator_id=project_items[0].creator_id,
            vector_score=best["image"],
            video_score=best["video"],
            document_score=best["document"],
            final_score=fuse_scores(best["image"], best["video"], content_type),
            title=project_items[0].metadata.get("project_title"),
            items=ordered,
        ))
    return projects


def rank_creators(projects: list[ProjectScore]) -> list[CreatorResult]:
    """ProjectScore를 크리에이터별로 묶어 정렬된 CreatorResult 리스트를 반환한다."""
    grouped: dict[str, list[ProjectScore]] = {}
    for project in projects:
        grouped.setdefault(project.creator_id, []).append(project)

    results = []
    for creator_id, creator_projects in grouped.items():
        creator_projects.sort(key=lambda p: (-p.final_score, p.project_id))
        results.append(CreatorResult(
            creator_id=creator_id,
            score=creator_projects[0].final_score,
            projects=creator_projects,
        ))

    results.sort(key=lambda r: (-r.score, r.creator_id))
    return results


def paginate(results: list, page: int, limit: int) -> list:
    """offset/limit 페이지네이션. 범위를 벗어나면 빈 리스트."""
    skip = (page - 1) * limit
    if skip >= len(results):
        return []
    return results[skip:skip + limit]


def rank(items: list[ContentItem], content_type: str = "all") -> list[CreatorResult]:
    return rank_creators(score_projects(items, content_type))
