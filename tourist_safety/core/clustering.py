"""
Proximity clustering of current tourist positions for the dashboard heat-map.

Single greedy pass, O(n^2) in tourist count: fine for a few thousand tracked
tourists, beyond that a spatial grid or tree is needed.
"""
import logging

import numpy as np
import pandas as pd

from ..config import CLUSTER_RADIUS_METERS
from ..schemas.schemas import Cluster, Coordinate
from .geofencing import distance_meters

logger = logging.getLogger(__name__)


def latest_per_tourist(samples):
    """Keep only the most recent sample per dtid, in order of first appearance."""
    if not samples:
        return []
    df = pd.DataFrame({
        "dtid": [sample.dtid for sample in samples],
        "timestamp": [sample.timestamp for sample in samples],
    })
    latest_idx = df.groupby("dtid", sort=False)["timestamp"].idxmax()
    return [samples[i] for i in latest_idx.tolist()]


def cluster_positions(positions, radius_meters=CLUSTER_RADIUS_METERS):
    """
    Group positions around seeds: every unprocessed position within
    radius_meters of a seed joins that seed's cluster.

    The center of a multi-member cluster is the plain mean of member
    latitudes and longitudes, a single member keeps its own position.
    """
    clusters = []
    processed = set()

    for i, seed in enumerate(positions):
        if i in processed:
            continue

        members = [seed]
        for j, other in enumerate(positions):
            if j == i or j in processed:
                continue
            if distance_meters(seed.coordinate, other.coordinate) <= radius_meters:
                members.append(other)
                processed.add(j)
        processed.add(i)

        if len(members) > 1:
            center = Coordinate(
                latitude=float(np.mean([m.latitude for m in members])),
                longitude=float(np.mean([m.longitude for m in members])),
            )
        else:
            center = Coordinate(latitude=seed.latitude, longitude=seed.longitude)

        clusters.append(Cluster(center=center, members=members, count=len(members)))

    logger.debug(f"Built {len(clusters)} clusters from {len(positions)} positions (radius={radius_meters}m)")
    return clusters
