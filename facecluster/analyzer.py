from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from facecluster.cluster import Clusterer
from facecluster.dataset import assemble_dataset, filter_detections, min_cluster_size, min_sample_size
from facecluster.models import Cluster, ClusteringParameters, ClusteringResult, Decision
from facecluster.pruner import ClusterPruner
from facecluster.resolver import admits, resolve

LOGGER = logging.getLogger(__name__)


class FaceClusterAnalyzer:
    """Incrementally sorts a user's face detections into persistent clusters.

    Each run clusters the user's unclustered faces together with a random
    sample of every existing cluster. The sampled faces vote on which
    existing cluster a new flat cluster corresponds to, so cluster ids
    stay stable between runs.

    Runs for the same user must not overlap; nothing here locks.
    """

    def __init__(self, detections, clusters, params: Optional[ClusteringParameters] = None,
                 clusterer_factory=Clusterer):
        self.detections = detections
        self.clusters = clusters
        self.params = params or ClusteringParameters()
        self.clusterer_factory = clusterer_factory
        self.pruner = ClusterPruner(detections, clusters)

    def set_min_dataset_size(self, min_size: int):
        self.params = dataclasses.replace(self.params, min_dataset_size=min_size)

    def calculate_clusters(self, user_id: str, batch_size: int = 0) -> ClusteringResult:
        """Run one clustering pass for ``user_id``.

        Storage and serialization errors abort the run as they occur;
        whatever was assigned before stays assigned.
        """
        LOGGER.debug("Retrieving face detections for user %s", user_id)
        if batch_size == 0:
            LOGGER.debug("No batch size given, fetching all unclustered detections")

        result = ClusteringResult(user_id=user_id)
        unclustered = self.detections.find_unclustered_by_user_id(user_id, batch_size)
        unclustered = filter_detections(unclustered, self.params.min_detection_size)
        result.detections_found = len(unclustered)

        if len(unclustered) < self.params.min_dataset_size:
            LOGGER.info("Not enough face detections found for user %s (%d < %d)",
                        user_id, len(unclustered), self.params.min_dataset_size)
            result.skipped = True
            return result

        LOGGER.info("Found %d unclustered detections for user %s. Calculating clusters.",
                    len(unclustered), user_id)

        existing = self.clusters.find_by_user_id(user_id)
        dataset = assemble_dataset(unclustered, existing, self.detections,
                                   self.params.sample_size_existing_clusters)

        n = len(dataset)
        clusterer = self.clusterer_factory(
            min_cluster_size=min_cluster_size(n),
            min_samples=min_sample_size(n),
            min_cluster_separation=self.params.min_cluster_separation,
            max_edge_length=self.params.max_cluster_edge_length,
        )
        flat_clusters = clusterer.cluster(dataset.vectors)

        for flat in flat_clusters:
            resolution = resolve(dataset, flat, self.params)

            if resolution.decision is Decision.MERGE:
                cluster = self.clusters.find(resolution.cluster_id)
                result.clusters_merged += 1
            elif resolution.decision is Decision.CREATE:
                cluster = self.clusters.insert(Cluster(user_id=user_id, title=""))
                result.clusters_created += 1
                result.created_cluster_ids.append(cluster.id)
            else:
                LOGGER.debug("Ambiguous overlap %.3f, discarding flat cluster of %d detections",
                             resolution.overlap, len(flat))
                result.clusters_discarded += 1
                continue

            # anchors only vote; only fresh detections are (re)assigned
            for slot in resolution.fresh:
                if not admits(slot.detection, resolution.centroid):
                    continue
                self.detections.assoc_with_cluster(slot.detection, cluster)
                result.assigned += 1

        LOGGER.info("Clustering complete. Total num of clustered detections: %d", result.assigned)
        result.pruned = self.prune_clusters(user_id)
        return result

    def prune_clusters(self, user_id: str) -> int:
        return self.pruner.prune(user_id)
