"""점수 융합 및 랭킹 테스트."""

import random

import pytest

from conftest import make_item
from talent_search.ranking import fuse_scores, paginate, rank, rank_creators, score_projects


class TestFuseScores:
    @pytest.mark.parametrize("content_type, expected", [
        ("all", 0.7),
        ("images", 0.4),
        ("videos", 0.7),
    ])
    def test_fusion_by_content_type(self, content_type, expected):
        assert fuse_scores(0.4, 0.7, content_type) == expected

    def test_missing_modality_does_not_lower_score(self):
        assert fuse_scores(0.8, 0.0, "all") == 0.8
        assert fuse_scores(0.0, 0.8, "all") == 0.8


class TestScoreProjects:
    def test_takes_max_per_modality(self):
        items = [
            make_item("i1", "c1", "p1", 0.3),
            make_item("i2", "c1", "p1", 0.6),
            make_item("v1", "c1", "p1", 0.5, modality="video"),
        ]

        [project] = score_projects(items, "all")

        assert project.vector_score == 0.6
        assert project.video_score == 0.5
        assert project.final_score == 0.6

    def test_document_score_does_not_enter_final_score(self):
        items = [
            make_item("i1", "c1", "p1", 0.3),
            make_item("d1", "c1", "p1", 0.9, modality="document"),
        ]

        [project] = score_projects(items, "all")

        assert project.document_score == 0.9
        assert project.final_score == 0.3

    def test_items_sorted_by_score(self):
        items = [
            make_item("b", "c1", "p1", 0.2),
            make_item("a", "c1", "p1", 0.9),
            make_item("c", "c1", "p1", 0.5, modality="video"),
        ]

        [project] = score_projects(items)

        assert [i.id for i in project.items] == ["a", "c", "b"]

    def test_title_from_item_metadata(self):
        [project] = score_projects([make_item("i1", "c1", "p1", 0.5, project_title="Wedding Day")])
        assert project.title == "Wedding Day"


class TestRankCreators:
    def test_best_work_forward(self):
        """0.95 하나 + 0.1 아홉 개 > 0.5 열 개."""
        items = [make_item("star-top", "star", "star-p0", 0.95)]
        items += [make_item(f"star-{i}", "star", f"star-p{i}", 0.1) for i in range(1, 10)]
        items += [make_item(f"avg-{i}", "steady", f"steady-p{i}", 0.5) for i in range(10)]

        results = rank(items, "all")

        assert [r.creator_id for r in results] == ["star", "steady"]
        assert results[0].score == 0.95

    def test_modality_fairness(self):
        """영상만 0.8인 크리에이터와 이미지만 0.8인 크리에이터는 같은 점수."""
        items = [
            make_item("v1", "videographer", "vp", 0.8, modality="video"),
            make_item("i1", "photographer", "pp", 0.8, modality="image"),
        ]

        results = rank(items, "all")

        assert results[0].score == results[1].score == 0.8
        # 동점이면 creator id 오름차순
        assert [r.creator_id for r in results] == ["photographer", "videographer"]

    def test_content_type_images_ignores_video_scores(self):
        items = [
            make_item("v1", "c1", "p1", 0.9, modality="video"),
            make_item("i1", "c2", "p2", 0.4),
        ]

        results = rank(items, "images")

        assert [r.creator_id for r in results] == ["c2", "c1"]
        assert results[1].score == 0.0

    def test_projects_sorted_by_final_score(self):
        items = [
            make_item("i1", "c1", "p-low", 0.2),
            make_item("i2", "c1", "p-high", 0.9),
            make_item("i3", "c1", "p-mid", 0.5),
        ]

        [result] = rank(items)

        assert [p.project_id for p in result.projects] == ["p-high", "p-mid", "p-low"]

    def test_order_independent_of_input_order(self):
        items = [
            make_item(f"i{n}", f"c{n % 7}", f"p{n}", round((n * 37 % 100) / 100, 2))
            for n in range(60)
        ]
        expected = [(r.creator_id, r.score) for r in rank(items)]

        rng = random.Random(7)
        for _ in range(5):
            shuffled = items[:]
            rng.shuffle(shuffled)
            assert [(r.creator_id, r.score) for r in rank(shuffled)] == expected

    def test_ties_broken_by_creator_id(self):
        projects = score_projects([
            make_item("i1", "zeta", "p1", 0.5),
            make_item("i2", "alpha", "p2", 0.5),
            make_item("i3", "mid", "p3", 0.5),
        ])

        results = rank_creators(projects)

        assert [r.creator_id for r in results] == ["alpha", "mid", "zeta"]


class TestPaginate:
    def test_slices_by_page(self):
        results = list(range(12))

        assert paginate(results, 1, 5) == [0, 1, 2, 3, 4]
        assert paginate(results, 3, 5) == [10, 11]

    def test_page_beyond_results_is_empty(self):
        assert paginate(list(range(3)), 2, 5) == []
        assert paginate([], 1, 5) == []
