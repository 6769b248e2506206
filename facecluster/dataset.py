from __future__ import annotations

import logging
from typing import Dict, Iterable, List

import numpy as np

from facecluster.models import DatasetSlot, Detection, FlatCluster
from facecluster.utils import DIMENSIONS

LOGGER = logging.getLogger(__name__)


def filter_detections(detections: Iterable[Detection], min_detection_size: float) -> List[Detection]:
    """Drop faces too small to yield a reliable embedding."""
    return [d for d in detections if d.height > min_detection_size and d.width > min_detection_size]


def min_cluster_size(n: int) -> int:
    return int(round(max(2, min(8, n ** (1 / 4)))))


def min_sample_size(n: int) -> int:
    return int(round(max(2, min(3, n ** (1 / 4)))))


class Dataset:
    """Fresh detections followed by anchor samples of existing clusters."""

    def __init__(self, slots: List[DatasetSlot], max_votes_by_cluster: Dict[int, int]):
        self.slots = slots
        self.max_votes_by_cluster = max_votes_by_cluster

    def __len__(self):
        return len(self.slots)

    @property
    def fresh_count(self) -> int:
        return sum(1 for s in self.slots if not s.is_anchor)

    @property
    def vectors(self) -> np.ndarray:
        if not self.slots:
            return np.zeros((0, DIMENSIONS), dtype=np.float32)
        return np.vstack([s.detection.vector for s in self.slots])

    def slots_for(self, flat_cluster: FlatCluster) -> List[DatasetSlot]:
        return [self.slots[i] for i in flat_cluster]


def assemble_dataset(unclustered, clusters, detection_store, sample_size: int) -> Dataset:
    slots = [DatasetSlot(d, is_anchor=False) for d in unclustered]
    max_votes = {}
    for cluster in clusters:
        sampled = detection_store.find_cluster_sample(cluster.id, sample_size)
        slots.extend(DatasetSlot(d, is_anchor=True) for d in sampled)
        max_votes[cluster.id] = len(sampled)
    dataset = Dataset(slots, max_votes)
    LOGGER.debug("Dataset: %d fresh detections, %d anchors from %d clusters",
                 dataset.fresh_count, len(dataset) - dataset.fresh_count, len(max_votes))
    return dataset
