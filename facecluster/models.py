from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from facecluster.utils import DIMENSIONS


@dataclass(eq=False)
class Detection:
    """One face found in one photo, with its embedding."""

    id: Optional[int]
    user_id: str
    file_id: int
    vector: np.ndarray
    height: float
    width: float
    cluster_id: Optional[int] = None
    threshold: float = 0.0

    def __post_init__(self):
        vec = np.asarray(self.vector, dtype=np.float32).reshape(-1)
        if vec.shape != (DIMENSIONS,):
            raise ValueError(f"face vector must have {DIMENSIONS} components, got {vec.size}")
        if not np.all(np.isfinite(vec)):
            raise ValueError("face vector contains undefined components")
        self.vector = vec


@dataclass
class Cluster:
    id: Optional[int] = None
    user_id: str = ""
    title: str = ""


@dataclass(frozen=True)
class FlatCluster:
    """Indices into one run's dataset that the clusterer grouped together."""

    indices: Tuple[int, ...]

    def __len__(self):
        return len(self.indices)

    def __iter__(self):
        return iter(self.indices)


@dataclass(frozen=True)
class ClusteringParameters:
    min_dataset_size: int = 120
    min_detection_size: float = 0.03
    min_cluster_separation: float = 0.0
    max_cluster_edge_length: float = 0.5
    sample_size_existing_clusters: int = 80
    max_overlap_new_cluster: float = 0.1
    min_overlap_existing_cluster: float = 0.5


@dataclass(frozen=True)
class DatasetSlot:
    """A dataset position: fresh detections may be reassigned, anchors only vote."""

    detection: Detection
    is_anchor: bool


@dataclass(frozen=True)
class Vote:
    cluster_id: Optional[int]

    @classmethod
    def known(cls, cluster_id: int) -> "Vote":
        return cls(cluster_id)

    @classmethod
    def unassigned(cls) -> "Vote":
        return cls(None)

    @property
    def is_known(self) -> bool:
        return self.cluster_id is not None


class Decision(enum.Enum):
    MERGE = "merge"
    CREATE = "create"
    DISCARD = "discard"


@dataclass
class Resolution:
    decision: Decision
    overlap: float
    centroid: np.ndarray
    fresh: list
    cluster_id: Optional[int] = None


@dataclass
class ClusteringResult:
    user_id: str
    detections_found: int = 0
    skipped: bool = False
    assigned: int = 0
    clusters_created: int = 0
    clusters_merged: int = 0
    clusters_discarded: int = 0
    pruned: int = 0
    created_cluster_ids: list = field(default_factory=list)
