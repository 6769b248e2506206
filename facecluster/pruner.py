import logging
from collections import defaultdict

from facecluster.utils import centroid_of, distance

LOGGER = logging.getLogger(__name__)


def find_files_with_duplicate_faces(detections):
    files = defaultdict(list)
    for det in detections:
        files[det.file_id].append(det)
    return {fid: dets for fid, dets in files.items() if len(dets) > 1}


class ClusterPruner:
    """Keeps at most one face per photo in each cluster.

    Of several faces from the same file, the one closest to the cluster
    centroid stays; the others go back to the unclustered pool.
    """

    def __init__(self, detections, clusters):
        self.detections = detections
        self.clusters = clusters

    def prune(self, user_id: str) -> int:
        clusters = self.clusters.find_by_user_id(user_id)
        if not clusters:
            LOGGER.debug("No face clusters found for user %s", user_id)
            return 0

        released = 0
        for cluster in clusters:
            detections = self.detections.find_by_cluster_id(cluster.id)
            duplicates = find_files_with_duplicate_faces(detections)
            if not duplicates:
                continue

            centroid = centroid_of(detections)
            for file_id, file_detections in duplicates.items():
                best = min(file_detections, key=lambda d: (distance(centroid, d.vector), d.id))
                for det in file_detections:
                    if det is best:
                        continue
                    det.cluster_id = None
                    self.detections.update(det)
                    released += 1
                LOGGER.debug("Cluster %s: kept detection %s of file %s", cluster.id, best.id, file_id)

        if released:
            LOGGER.info("Pruned %d duplicate face(s) for user %s", released, user_id)
        return released
