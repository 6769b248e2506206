from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, Optional, Tuple

from facecluster.dataset import Dataset
from facecluster.models import (
    ClusteringParameters,
    DatasetSlot,
    Decision,
    Detection,
    FlatCluster,
    Resolution,
    Vote,
)
from facecluster.utils import centroid_of, distance, is_null_vector

LOGGER = logging.getLogger(__name__)


def tally_votes(anchor_slots: Iterable[DatasetSlot]) -> Counter:
    votes = Counter()
    for slot in anchor_slots:
        cid = slot.detection.cluster_id
        votes[Vote.known(cid) if cid is not None else Vote.unassigned()] += 1
    return votes


def winning_vote(votes: Counter) -> Tuple[Optional[int], int]:
    """Existing cluster with the most votes; equal counts go to the lowest id.

    Unassigned votes are counted but never win.
    """
    known = [(v.cluster_id, n) for v, n in votes.items() if v.is_known]
    if not known:
        return None, 0
    cluster_id, count = min(known, key=lambda kv: (-kv[1], kv[0]))
    return cluster_id, count


def compute_overlap(count: int, cluster_id: Optional[int], max_votes_by_cluster: Dict[int, int]) -> float:
    if cluster_id is None or count == 0:
        return 0.0
    max_votes = max_votes_by_cluster.get(cluster_id, 0)
    if max_votes == 0:
        return 0.0
    return count / max_votes


def resolve(dataset: Dataset, flat_cluster: FlatCluster, params: ClusteringParameters) -> Resolution:
    slots = dataset.slots_for(flat_cluster)
    centroid = centroid_of(s.detection for s in slots)
    fresh = [s for s in slots if not s.is_anchor]
    anchors = [s for s in slots if s.is_anchor]

    cluster_id, count = winning_vote(tally_votes(anchors))
    overlap = compute_overlap(count, cluster_id, dataset.max_votes_by_cluster)

    if overlap > params.min_overlap_existing_cluster:
        decision = Decision.MERGE
    elif overlap < params.max_overlap_new_cluster:
        decision = Decision.CREATE
        cluster_id = None
    else:
        decision = Decision.DISCARD

    LOGGER.debug("Flat cluster of %d (%d fresh, %d anchors): overlap %.3f -> %s",
                 len(slots), len(fresh), len(anchors), overlap, decision.value)
    return Resolution(decision=decision, overlap=overlap, centroid=centroid, fresh=fresh, cluster_id=cluster_id)


def admits(detection: Detection, centroid) -> bool:
    """Per-detection distance gate; a threshold of 0 never rejects."""
    if detection.threshold > 0.0 and not is_null_vector(centroid):
        # farther from the centroid than its own threshold allows
        if distance(detection.vector, centroid) >= detection.threshold:
            return False
    return True
