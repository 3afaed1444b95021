"""
Purpose: Central configuration for runner selection and offer rotation.
What it does:

Stores all tunable thresholds/weights for finding runners and rotating offers:

RADIUS_METERS = 500
OFFER_TIMEOUT_SECONDS = 60
HEARTBEAT_WINDOW_SECONDS = 120
LOCATION_FRESHNESS_SECONDS = 90
WEIGHTS = 0.40 distance / 0.35 rating / 0.25 affinity

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for runner eligibility, ranking and offer timeouts.
    """

    # --- Geofence ---
    # Runners farther than this from the poster are never offered the task.
    # Also the distance at which distance_score reaches 0.
    radius_meters: float = 500.0

    # --- Offer window ---
    # How long the notified runner has to respond before the offer rotates.
    offer_timeout_seconds: int = 60

    # --- Presence ---
    # App-foreground heartbeat must be at most this old.
    heartbeat_window_seconds: int = 120
    # A location fix older than this makes the runner ineligible
    # (a runner that never reported a fix time is given the benefit of the doubt).
    location_freshness_seconds: int = 90

    # --- Ranking weights (must sum to 1.0) ---
    distance_weight: float = 0.40
    rating_weight: float = 0.35
    affinity_weight: float = 0.25
    max_rating: float = 5.0

    # --- TF-IDF ---
    # IDF given to a term present in both documents instead of ln(1) = 0.
    idf_shared_term_weight: float = 0.1

    # --- Timeout sweeper ---
    sweep_interval_seconds: int = 15
    # Bound per-cycle work; the oldest offers go first.
    sweep_batch_limit: int = 50

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.radius_meters <= 0:
            raise ValueError("radius_meters must be > 0")

        if self.offer_timeout_seconds <= 0:
            raise ValueError("offer_timeout_seconds must be > 0")

        if self.heartbeat_window_seconds <= 0 or self.location_freshness_seconds <= 0:
            raise ValueError("presence windows must be > 0")

        weights = (self.distance_weight, self.rating_weight, self.affinity_weight)
        if any(w < 0 for w in weights):
            raise ValueError("ranking weights must be >= 0")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ValueError("ranking weights must sum to 1.0")

        if self.max_rating <= 0:
            raise ValueError("max_rating must be > 0")

        if self.idf_shared_term_weight <= 0:
            raise ValueError("idf_shared_term_weight must be > 0")

        if self.sweep_interval_seconds <= 0 or self.sweep_batch_limit <= 0:
            raise ValueError("sweep interval and batch limit must be > 0")


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p


def policy_from_env(base: DispatchPolicy | None = None) -> DispatchPolicy:
    """
    Apply overrides from the environment (or a .env file).

    Example in .env:
    DISPATCH_RADIUS_METERS=650
    DISPATCH_OFFER_TIMEOUT_SECONDS=60
    DISPATCH_SWEEP_INTERVAL_SECONDS=10
    DISPATCH_SWEEP_BATCH_LIMIT=50
    """
    load_dotenv()
    p = base or DispatchPolicy()

    overrides = {}
    radius = os.getenv("DISPATCH_RADIUS_METERS")
    if radius:
        overrides["radius_meters"] = float(radius)
    timeout = os.getenv("DISPATCH_OFFER_TIMEOUT_SECONDS")
    if timeout:
        overrides["offer_timeout_seconds"] = int(timeout)
    interval = os.getenv("DISPATCH_SWEEP_INTERVAL_SECONDS")
    if interval:
        overrides["sweep_interval_seconds"] = int(interval)
    limit = os.getenv("DISPATCH_SWEEP_BATCH_LIMIT")
    if limit:
        overrides["sweep_batch_limit"] = int(limit)

    p = replace(p, **overrides)
    p.validate()
    return p
