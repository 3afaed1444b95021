import math

import pytest

from dispatch.affinity import (
    affinity_score,
    cosine_similarity,
    history_tfidf_vector,
    inverse_document_frequency,
    task_count_term_frequency,
    term_frequency,
    tfidf_vector,
)
from runners.models import build_history


def test_task_side_term_frequency_counts_occurrences():
    assert term_frequency("printing", ["printing", "delivery", "printing", "food"]) == 0.5
    assert term_frequency("printing", []) == 0.0


def test_runner_side_term_frequency_counts_each_task_once():
    history = build_history([["printing", "printing"], ["printing", "delivery"], ["food"], ["food"]])
    # the duplicate label in the first task does not count twice
    assert task_count_term_frequency("printing", history) == 0.5
    assert task_count_term_frequency("delivery", history) == 0.25
    assert task_count_term_frequency("printing", ()) == 0.0


def test_idf_uses_smoothing_for_terms_in_both_documents():
    documents = [frozenset({"printing"}), frozenset({"printing", "delivery"})]
    assert inverse_document_frequency("printing", documents) == 0.1
    assert inverse_document_frequency("delivery", documents) == pytest.approx(math.log(2))
    assert inverse_document_frequency("laundry", documents) == 0.0


def test_cosine_similarity_of_a_vector_with_itself_is_one():
    v = {"printing": 0.3, "delivery": 0.7, "food": 0.01}
    assert cosine_similarity(v, v) == pytest.approx(1.0, abs=1e-12)


def test_cosine_similarity_guards_zero_vectors():
    assert cosine_similarity({}, {"printing": 1.0}) == 0.0
    assert cosine_similarity({"printing": 0.0}, {"printing": 1.0}) == 0.0


def test_cosine_similarity_of_disjoint_vectors_is_zero():
    assert cosine_similarity({"printing": 1.0}, {"delivery": 1.0}) == 0.0


def test_scenario_a_exact_affinity():
    """
    task ["printing"] vs history [["printing"], ["printing"], ["delivery"]]
    task vector:   printing = 1 * 0.1
    runner vector: printing = 2/3 * 0.1, delivery = 1/3 * ln(2/1)
    """
    history = build_history([["printing"], ["printing"], ["delivery"]])

    w_task = 1.0 * 0.1
    w_printing = (2 / 3) * 0.1
    w_delivery = (1 / 3) * math.log(2)
    expected = (w_task * w_printing) / (math.sqrt(w_task ** 2) * math.sqrt(w_printing ** 2 + w_delivery ** 2))

    assert abs(affinity_score(["printing"], history) - expected) < 1e-9
    assert abs(expected - 0.27723) < 1e-4


def test_scenario_a_vectors():
    history = build_history([["printing"], ["printing"], ["delivery"]])
    documents = [frozenset({"printing"}), frozenset({"printing", "delivery"})]

    assert tfidf_vector(["printing"], documents) == {"printing": pytest.approx(0.1)}
    runner_vector = history_tfidf_vector(history, documents)
    assert runner_vector["printing"] == pytest.approx(2 / 3 * 0.1)
    assert runner_vector["delivery"] == pytest.approx(1 / 3 * math.log(2))


def test_fully_matching_history_still_gets_positive_affinity():
    # every term is shared -> IDF 0.1, not ln(1) = 0
    history = build_history([["printing"], ["printing"]])
    assert affinity_score(["printing"], history) == pytest.approx(1.0)


def test_multi_category_commission_against_mixed_history():
    history = build_history([["printing", "delivery"], ["food"]])
    score = affinity_score(["printing", "delivery"], history)
    assert 0.0 < score < 1.0


def test_empty_inputs_score_zero():
    history = build_history([["printing"]])
    assert affinity_score([], history) == 0.0
    assert affinity_score(["printing"], ()) == 0.0
    # categories that normalise to nothing are dropped
    assert affinity_score(["   ", ""], history) == 0.0


def test_history_with_only_blank_categories_scores_zero():
    history = build_history([[""], ["  "]])
    assert affinity_score(["printing"], history) == 0.0


def test_labels_are_normalised_before_matching():
    history = build_history([[" Printing "]])
    assert affinity_score(["PRINTING"], history) == pytest.approx(1.0)


def test_affinity_stays_within_unit_interval():
    history = build_history([["printing"], ["delivery", "food"], ["laundry"], ["printing", "food"]])
    for categories in (["printing"], ["food", "food"], ["tutoring"], ["printing", "laundry", "food"]):
        assert 0.0 <= affinity_score(categories, history) <= 1.0 + 1e-12
