import csv
import logging
import os
import random
from dataclasses import replace
from datetime import timedelta
from typing import List

import pandas as pd

from dispatch.dispatcher import Dispatcher, DispatchService
from dispatch.policy import policy_from_env
from dispatch.store import InMemoryTaskStore
from dispatch.sweeper import TimeoutSweeper
from routing.geofence import offset_meters
from runners.models import Runner
from runners.presence import is_present
from tasks.models import Task

CAMPUS_CENTER = (7.0656, 125.5969)

def load_runners(filepath="mock_runners.csv") -> List[Runner]:
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    df = pd.read_csv(os.path.join(base_dir, filepath), keep_default_na=False)
    df["last_seen_at"] = pd.to_datetime(df["last_seen_at"], utc=True)
    df["location_updated_at"] = pd.to_datetime(df["location_updated_at"], utc=True)

    runners = []
    for _, row in df.iterrows():
        history = [task.split(",") for task in str(row["history"]).split(";") if task]
        runners.append(
            Runner.new(
                str(row["runner_id"]),
                float(row["lat"]),
                float(row["lon"]),
                is_available=str(row["is_available"]).lower() == "true",
                last_seen_at=row["last_seen_at"].to_pydatetime(),
                location_updated_at=row["location_updated_at"].to_pydatetime(),
                average_rating=float(row["average_rating"]),
                history=history,
            )
        )
    return runners

def build_tasks(count=10) -> List[Task]:
    tasks = []
    for i in range(count):
        poster_location = offset_meters(CAMPUS_CENTER, random.uniform(-250, 250), random.uniform(-250, 250))
        if i % 2 == 0:
            task = Task.errand(f"e_{i+1}", f"c_{i+1}", random.choice(["printing", "food", "laundry"]), poster_location)
        else:
            task = Task.commission(f"m_{i+1}", f"c_{i+1}", "Tutoring, Photocopy", poster_location)
        tasks.append(task)
    return tasks

def run_simulation(ignore_probability=0.6, minutes=5):
    """
    Every runner that gets an offer ignores it with ignore_probability,
    otherwise accepts on the next sweep. The sweeper rotates ignored offers.
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    print("=== STARTING DISPATCH SIMULATION ===")

    runners = load_runners()
    tasks = build_tasks()
    print(f"Loaded {len(runners)} Runners and {len(tasks)} Tasks.\n")

    store = InMemoryTaskStore()
    for runner in runners:
        store.add_runner(runner)
    for task in tasks:
        store.add_task(task)

    policy = policy_from_env()
    service = DispatchService(store, Dispatcher(policy))
    sweeper = TimeoutSweeper(service, policy)

    # simulated clock starts at the freshest heartbeat in the file
    now = max(r.last_seen_at for r in runners if r.last_seen_at)
    end = now + timedelta(minutes=minutes)
    online = [r for r in runners if is_present(r, now, policy.heartbeat_window_seconds, policy.location_freshness_seconds)]

    while now <= end:
        # runners that were online keep their app in the foreground
        for runner in online:
            store.add_runner(replace(runner, last_seen_at=now, location_updated_at=now))

        stats = sweeper.run_cycle(now)
        print(f"[{now:%H:%M:%S}] {stats.offered} offered, {stats.reassigned} reassigned, {stats.cleared} cleared")

        for task in tasks:
            current = store.get_task(task.id)
            if current.is_terminal or current.notified_runner_id is None:
                continue
            if random.random() >= ignore_probability:
                store.accept_task(task.id, current.notified_runner_id)
                print(f"  [ACCEPTED] {task.id} -> {current.notified_runner_id}")

        now += timedelta(seconds=policy.sweep_interval_seconds)

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    output_path = os.path.join(base_dir, "dispatch_results.csv")
    with open(output_path, "w", newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["task_id", "kind", "categories", "assigned_runner", "timed_out_runners"])
        for task in tasks:
            final = store.get_task(task.id)
            writer.writerow([
                final.id,
                final.kind.value,
                "|".join(final.categories),
                final.assigned_runner_id or "UNASSIGNED",
                len(final.excluded_runner_ids),
            ])

    assigned = sum(1 for t in tasks if store.get_task(t.id).assigned_runner_id)
    print("\n=== SIMULATION COMPLETE ===")
    print(f"Tasks Assigned: {assigned} / {len(tasks)}")
    print(f"Results written to '{output_path}'.")

if __name__ == "__main__":
    run_simulation()
