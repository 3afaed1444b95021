#Purpose: Affinity model (the "has this runner done this kind of task before" layer).
#TF-IDF weighted cosine similarity over a two-document corpus:
#document 1 = the task's category list
#document 2 = the runner's completed-task category history
#Typical responsibilities:
#term frequency (task side: occurrences / length; runner side: tasks containing term / N)
#smoothed IDF (a term shared by both documents keeps a small positive weight)
#cosine similarity with divide-by-zero / nan guards
#Output: a float in [0, 1].

import math
from typing import Dict, FrozenSet, List, Sequence

from runners.models import CategoryHistory
from tasks.models import normalize_categories

TfIdfVector = Dict[str, float]

SHARED_TERM_IDF = 0.1 #used instead of ln(2/2) = 0 so shared terms do not vanish


def term_frequency(term: str, document: Sequence[str]) -> float:
    """Occurrences of term in document / document length."""
    if not document:
        return 0.0
    return sum(1 for word in document if word == term) / len(document)


def task_count_term_frequency(term: str, history: CategoryHistory) -> float:
    """
    Share of completed tasks that carry the term.
    Each task counts once per term even if it lists the term twice.
    """
    total_tasks = len(history)
    if total_tasks == 0:
        return 0.0
    tasks_with_term = sum(1 for task_categories in history if term in task_categories)
    return tasks_with_term / total_tasks


def inverse_document_frequency(
    term: str,
    documents: Sequence[FrozenSet[str]],
    shared_term_idf: float = SHARED_TERM_IDF,
) -> float:
    """
    ln(len(documents) / documents containing term), smoothed:
    a term found in every document gets shared_term_idf instead of 0.
    """
    containing = sum(1 for document in documents if term in document)
    if containing == 0:
        return 0.0
    if containing == len(documents):
        return shared_term_idf
    return math.log(len(documents) / containing)


def tfidf_vector(
    document: Sequence[str],
    documents: Sequence[FrozenSet[str]],
    shared_term_idf: float = SHARED_TERM_IDF,
) -> TfIdfVector:
    vector: TfIdfVector = {}
    for term in dict.fromkeys(document): #distinct terms, first-seen order
        vector[term] = term_frequency(term, document) * inverse_document_frequency(
            term, documents, shared_term_idf
        )
    return vector


def history_tfidf_vector(
    history: CategoryHistory,
    documents: Sequence[FrozenSet[str]],
    shared_term_idf: float = SHARED_TERM_IDF,
) -> TfIdfVector:
    """TF-IDF vector for the runner side, using task-count term frequency."""
    terms: List[str] = []
    for task_categories in history:
        for term in sorted(task_categories):
            if term not in terms:
                terms.append(term)

    return {
        term: task_count_term_frequency(term, history)
        * inverse_document_frequency(term, documents, shared_term_idf)
        for term in terms
    }


def cosine_similarity(vector1: TfIdfVector, vector2: TfIdfVector) -> float:
    """
    Dot product over magnitudes across the union of terms.
    Missing terms count as 0. Returns 0 for a zero vector or a nan result.
    """
    dot_product = 0.0
    magnitude1 = 0.0
    magnitude2 = 0.0
    for term in set(vector1) | set(vector2):
        value1 = vector1.get(term, 0.0)
        value2 = vector2.get(term, 0.0)
        dot_product += value1 * value2
        magnitude1 += value1 * value1
        magnitude2 += value2 * value2

    denominator = math.sqrt(magnitude1) * math.sqrt(magnitude2)
    if denominator == 0:
        return 0.0

    similarity = dot_product / denominator
    if math.isnan(similarity):
        return 0.0
    return similarity


def affinity_score(
    task_categories: Sequence[str],
    history: CategoryHistory,
    shared_term_idf: float = SHARED_TERM_IDF,
) -> float:
    """
    How well a task's categories match a runner's completed-task history.

    Args:
        task_categories: the task's category list (duplicates allowed)
        history: one category set per completed task
        shared_term_idf: IDF for a term present in both documents

    Returns:
        cosine similarity of the two TF-IDF vectors, 0 when either side is empty.
    """
    task_document = normalize_categories(task_categories)
    if not task_document or not history:
        return 0.0

    runner_terms = frozenset(term for task_categories_ in history for term in task_categories_)
    if not runner_terms:
        return 0.0

    # two-document corpus, each deduplicated for the "contains" test
    documents = [frozenset(task_document), runner_terms]

    task_vector = tfidf_vector(task_document, documents, shared_term_idf)
    runner_vector = history_tfidf_vector(history, documents, shared_term_idf)
    return cosine_similarity(task_vector, runner_vector)
