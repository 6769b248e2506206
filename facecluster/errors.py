class FaceClusterError(Exception):
    """Base class for errors that abort a clustering run."""


class StorageError(FaceClusterError):
    """A read or write against the face database failed."""


class ClusterNotFoundError(StorageError):
    def __init__(self, cluster_id):
        super().__init__(f"cluster {cluster_id} does not exist")
        self.cluster_id = cluster_id


class SerializationError(FaceClusterError):
    """An embedding could not be encoded to or decoded from its stored form."""
