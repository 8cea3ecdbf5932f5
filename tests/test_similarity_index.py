import numpy as np
import pytest

from conftest import make_product
from recohub.domain.exceptions import IndexNotReadyError, TrainingInfeasibleError
from recohub.domain.services.constants import PROVENANCE_KNN
from recohub.domain.services.similarity_index import (
    SimilarityIndex,
    extract_features,
    min_max_scale,
    similarity_score,
    train_index,
)


def ids(results):
    return [r.product_id for r in results]


def test_end_to_end_same_category_ranks_ahead(scenario_products):
    index = train_index(scenario_products, k=5)
    target = scenario_products[0]

    top3 = index.recommend(target, limit=3)
    assert set(ids(top3)) == {2, 3, 4}
    assert set(ids(top3[:2])) == {3, 4}                 # C and D sit closest on price
    assert all(0 < r.score <= 100 for r in top3)

    all4 = index.recommend(target, limit=4)
    assert ids(all4)[2:] == [2, 5]
    assert all4[-1].score < min(r.score for r in top3)
    assert "Electronics category" in all4[0].explanation
    assert "similar (Books)" in all4[-1].explanation


def test_recommend_is_deterministic(scenario_products):
    index = train_index(scenario_products)
    first = index.recommend(scenario_products[1], limit=4)
    second = index.recommend(scenario_products[1], limit=4)
    assert first == second


def test_target_is_never_recommended_to_itself(scenario_products):
    index = train_index(scenario_products)
    for p in scenario_products:
        assert p.id not in ids(index.recommend(p, limit=10))


def test_ranks_are_contiguous_and_scores_bounded(scenario_products):
    index = train_index(scenario_products)
    results = index.recommend(scenario_products[4], limit=10)
    assert [r.rank for r in results] == list(range(1, len(results) + 1))
    assert all(0 <= r.score <= 100 for r in results)
    assert all(r.provenance == PROVENANCE_KNN for r in results)


def test_k_caps_results_below_limit(scenario_products):
    index = train_index(scenario_products, k=2)
    # nearest two for A are A itself and one of C/D; self is skipped
    results = index.recommend(scenario_products[0], limit=5)
    assert len(results) == 1
    assert results[0].product_id in {3, 4}


def test_distance_ties_keep_training_order():
    items = [
        make_product(1, "A", "Books", "10.00"),
        make_product(2, "B", "Books", "20.00"),
        make_product(3, "C", "Books", "30.00"),
    ]
    index = train_index(items)
    results = index.recommend(items[1], limit=2)
    assert ids(results) == [1, 3]
    assert results[0].score == results[1].score


def test_feature_layout_and_frozen_ranges(scenario_products):
    index = train_index(scenario_products)
    assert index.categories == ("Books", "Electronics")
    assert index.matrix.shape == (5, 3)
    np.testing.assert_allclose(index.mins, [0.0, 0.0, 15.0])
    np.testing.assert_allclose(index.maxs, [1.0, 1.0, 120.0])
    np.testing.assert_allclose(index.matrix[1], [0.0, 1.0, 1.0])   # B is the most expensive
    assert not index.matrix.flags.writeable


def test_unseen_category_gives_zero_one_hot(scenario_products):
    index = train_index(scenario_products)
    toy = make_product(99, "Kite", "Toys", "100.00")

    vec = index.query_vector(toy)
    np.testing.assert_allclose(vec[:2], [0.0, 0.0])
    assert vec[2] == pytest.approx(85 / 105)

    results = index.recommend(toy, limit=3)
    assert len(results) == 3


def test_flat_feature_scales_to_zero():
    items = [
        make_product(1, "A", "Books", "10.00"),
        make_product(2, "B", "Books", "10.00"),
    ]
    index = train_index(items)
    np.testing.assert_allclose(index.matrix, np.zeros((2, 2)))
    assert index.recommend(items[0], limit=1)[0].score == 100.0


def test_min_max_scale_with_degenerate_span():
    out = min_max_scale(np.array([5.0, 3.0]), np.array([5.0, 1.0]), np.array([5.0, 5.0]))
    np.testing.assert_allclose(out, [0.0, 0.5])


def test_extract_features_appends_decimal_price():
    vec = extract_features(make_product(1, "A", "Books", "12.34"), ("Books", "Music"))
    np.testing.assert_allclose(vec, [1.0, 0.0, 12.34])


def test_similarity_score_bounds():
    assert similarity_score(0.0) == 100.0
    assert similarity_score(1.0) == 50.0
    assert 0 < similarity_score(1e9) < 1


@pytest.mark.parametrize("count", [0, 1])
def test_training_needs_two_items(count, scenario_products):
    with pytest.raises(TrainingInfeasibleError):
        train_index(scenario_products[:count])


def test_untrained_index_rejects_queries(scenario_products):
    index = SimilarityIndex()
    assert not index.is_trained
    with pytest.raises(IndexNotReadyError):
        index.recommend(scenario_products[0], limit=3)


def test_ensure_trained_trains_once_until_cleared(scenario_products):
    index = SimilarityIndex()
    first = index.ensure_trained(scenario_products, k=5)
    assert index.ensure_trained(scenario_products[:2], k=1) is first

    index.clear()
    assert not index.is_trained
    second = index.ensure_trained(scenario_products[:2], k=1)
    assert second is not first
    assert len(second) == 2


def test_failed_retrain_keeps_previous_snapshot(scenario_products):
    index = SimilarityIndex()
    snapshot = index.retrain(scenario_products)
    with pytest.raises(TrainingInfeasibleError):
        index.retrain(scenario_products[:1])
    assert index.snapshot is snapshot
