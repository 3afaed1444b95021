import pandas as pd
import numpy as np
from datetime import datetime, timezone, timedelta

CATEGORIES = ["printing", "delivery", "food", "laundry", "groceries", "tutoring", "photocopy"]

def generate_mock_runners(num_runners=60, output_file="mock_runners.csv", seed=None):
    """
    Generates a campus-sized pool of runners designed to exercise the dispatch engine.
    Runners are scattered within ~700m of the campus center so some fall outside the
    500m geofence, some are offline, and some have stale heartbeats.
    Completed-task history is stored as ';' separated tasks of ',' separated categories.
    """
    rng = np.random.default_rng(seed)

    # Center around the campus (UM Matina, Davao)
    CENTER_LAT = 7.0656
    CENTER_LON = 125.5969

    now = datetime.now(timezone.utc)
    data = []
    for runner_index in range(num_runners):
        # ~0.0065 degrees is roughly 700m
        lat = CENTER_LAT + rng.uniform(-0.0065, 0.0065)
        lon = CENTER_LON + rng.uniform(-0.0065, 0.0065)

        # 80% heartbeat in the last minute, the rest up to 5 minutes ago
        seen_seconds_ago = rng.integers(0, 60) if rng.random() < 0.8 else rng.integers(60, 300)

        completed = []
        for _ in range(rng.integers(0, 12)):
            task_categories = rng.choice(CATEGORIES, size=rng.integers(1, 3), replace=False)
            completed.append(",".join(task_categories))

        data.append({
            "runner_id": f"r_{str(runner_index+1).zfill(3)}",
            "lat": np.round(lat, 6),
            "lon": np.round(lon, 6),
            "is_available": bool(rng.random() < 0.85),
            "last_seen_at": (now - timedelta(seconds=int(seen_seconds_ago))).isoformat(),
            "location_updated_at": (now - timedelta(seconds=int(seen_seconds_ago))).isoformat(),
            "average_rating": np.round(rng.uniform(2.5, 5.0), 2),
            "history": ";".join(completed),
        })

    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_runners} runners and saved to '{output_file}'")

    print("\nCategory experience across the pool:")
    counts = df["history"].str.split("[;,]", regex=True).explode().replace("", np.nan).dropna().value_counts()
    for name, count in counts.items():
        print(f"  {name}: {count} completed tasks")
    return df

if __name__ == "__main__":
    generate_mock_runners(num_runners=60)
