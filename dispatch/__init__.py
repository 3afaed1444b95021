#Expose the high-level pipeline pieces:
#Candidate filtering (hard rules)
#Affinity (TF-IDF cosine)
#Scoring / ranking
#Dispatcher orchestrator (the "one call" entry point) + store-backed service
#Timeout sweeper (the periodic single writer)

from .affinity import affinity_score, cosine_similarity
from .candidate_filter import Candidate, DispatchError, MissingReferenceLocation, build_candidates
from .scoring import RankedCandidate, rank_candidates, select_top
from .dispatcher import DecisionKind, DispatchDecision, Dispatcher, DispatchService #the main entry points
from .policy import DispatchPolicy, default_dispatch_policy, policy_from_env
from .store import ConcurrentWriteConflict, InMemoryTaskStore, TaskNotFound, TaskStore
from .sweeper import SweepStats, TimeoutSweeper

__all__ = [
    "affinity_score",
    "cosine_similarity",
    "Candidate",
    "DispatchError",
    "MissingReferenceLocation",
    "build_candidates",
    "RankedCandidate",
    "rank_candidates",
    "select_top",
    "DecisionKind",
    "DispatchDecision",
    "Dispatcher",
    "DispatchService",
    "DispatchPolicy",
    "default_dispatch_policy",
    "policy_from_env",
    "ConcurrentWriteConflict",
    "InMemoryTaskStore",
    "TaskNotFound",
    "TaskStore",
    "SweepStats",
    "TimeoutSweeper",
]
