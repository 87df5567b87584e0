"""포트폴리오 시드 적재 - JSON 코퍼스 → (필요 시) 임베딩 → pgvector 저장.

코퍼스 형식:
    {"creators": [{"username", "primary_role", ...,
                   "projects": [{"title", "subjects", "styles", "budget",
                                 "images": [...], "videos": [...], "documents": [...]}]}]}

미디어 항목에 embedding이 없으면 캡션 텍스트로 임베딩을 생성한다.
"""

import argparse
import json
from pathlib import Path

from talent_search.embedding import embed
from talent_search.vectorstore import ContentStore

BATCH_SIZE = 32

# 모달리티 → (코퍼스 키, 임베딩 텍스트 필드)
MEDIA_KEYS: dict[str, tuple[str, tuple[str, ...]]] = {
    "image": ("images", ("alt_text",)),
    "video": ("videos", ("title", "description")),
    "document": ("documents", ("title",)),
}


def caption_of(item: dict, fields: tuple[str, ...]) -> str:
    """임베딩에 사용할 캡션 텍스트를 만든다."""
    return " ".join(str(item[f]) for f in fields if item.get(f)).strip()


def fill_embeddings(items: list[dict], fields: tuple[str, ...]) -> None:
    """embedding이 없는 항목에 배치로 임베딩을 채운다."""
    missing = [item for item in items if not item.get("embedding") and caption_of(item, fields)]
    for i in range(0, len(missing), BATCH_SIZE):
        batch = missing[i : i + BATCH_SIZE]
        vectors = embed([caption_of(item, fields) for item in batch])
        for item, vector in zip(batch, vectors):
            item["embedding"] = vector


def ingest_corpus(path: Path, store: ContentStore) -> dict[str, int]:
    """코퍼스 파일 하나를 적재하고 종류별 건수를 반환한다."""
    corpus = json.loads(path.read_text(encoding="utf-8"))
    counts = {"creators": 0, "projects": 0, "image": 0, "video": 0, "document": 0}

    for creator in corpus.get("creators", []):
        creator_id = store.insert_creator(creator)
        counts["creators"] += 1

        for project in creator.get("projects", []):
            project_id = store.insert_project(creator_id, project)
            counts["projects"] += 1

            for modality, (key, fields) in MEDIA_KEYS.items():
                items = project.get(key, [])
                fill_embeddings(items, fields)
                for item in items:
                    if not item.get("embedding"):
                        print(f"  ⚠ {project['title']}: 캡션 없는 {modality} 건너뜀")
                        continue
                    store.insert_media(modality, project_id, creator_id, item)
                    counts[modality] += 1

    return counts


def main():
    parser = argparse.ArgumentParser(description="포트폴리오 코퍼스를 벡터 DB에 적재합니다.")
    parser.add_argument("--source", required=True, help="JSON 코퍼스 파일 경로")
    args = parser.parse_args()

    path = Path(args.source)
    if not path.is_file():
        raise FileNotFoundError(f"파일을 찾을 수 없습니다: {args.source}")

    counts = ingest_corpus(path, ContentStore())
    print(
        f"적재 완료: creators={counts['creators']}, projects={counts['projects']}, "
        f"images={counts['image']}, videos={counts['video']}, documents={counts['document']}"
    )


if __name__ == "__main__":
    main()
