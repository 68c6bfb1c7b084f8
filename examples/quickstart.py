"""AstraShield quickstart: screen a few element sets and forecast their decay."""

import logging
from datetime import datetime, timezone

from astrashield import ConjunctionEngine, InMemoryObjectStore, parse_element_sets

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

elset_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596
CSS (TIANHE)
1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993
2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157018
HST
1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9994
2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912
""".strip()

objects = parse_element_sets(elset_text)
for obj in objects:
    print(f"{obj.name:<14} {obj.catalog_id:>6}  alt {obj.orbital_altitude_km:7.1f} km  "
          f"period {obj.orbital_period_min:6.1f} min")

store = InMemoryObjectStore()
store.bulk_upsert_objects(objects)
engine = ConjunctionEngine(store)

now = datetime(2024, 2, 14, 12, 0, tzinfo=timezone.utc)
for c in engine.run_conjunction_detection(now):
    print(f"{c.cat_low} x {c.cat_high} | {c.closest_approach_km:.2f} km | "
          f"Pc={c.probability_formatted} ({c.risk_level})")

for score in engine.score_risks(now):
    print(f"{score.name:<14} risk {score.risk_score:.3f}  nearest {score.closest_distance_km:.0f} km")

for p in engine.predict_reentries(now):
    print(f"{p.name:<14} reentry: {p.status} in {p.days_until_reentry} days")

# Live data (network):
# from astrashield import CelesTrakClient
# CelesTrakClient().ingest(store, group="stations")
