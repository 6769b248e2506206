"""Environment-based configuration for face clustering runs."""

import os

from facecluster.models import ClusteringParameters

DB_PATH = os.getenv("FACECLUSTER_DB_PATH", "faces.db")

# Minimum number of usable unclustered faces before a run is attempted
MIN_DATASET_SIZE = int(os.getenv("FACECLUSTER_MIN_DATASET_SIZE", "120"))

# Unclustered faces fetched per run; 0 fetches all of them
BATCH_SIZE = int(os.getenv("FACECLUSTER_BATCH_SIZE", "0"))

LOG_LEVEL = os.getenv("FACECLUSTER_LOG_LEVEL", "INFO")


def default_parameters(min_dataset_size=None) -> ClusteringParameters:
    if min_dataset_size is None:
        min_dataset_size = MIN_DATASET_SIZE
    return ClusteringParameters(min_dataset_size=min_dataset_size)
