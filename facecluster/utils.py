import numpy as np

# face embeddings are 128-dimensional
DIMENSIONS = 128


def distance(v1, v2) -> float:
    a = np.asarray(v1, dtype=np.float64)
    b = np.asarray(v2, dtype=np.float64)
    return float(np.linalg.norm(a - b))


def centroid_of(detections) -> np.ndarray:
    """Coordinate-wise mean of the detections' vectors.

    An empty selection yields the zero vector, which never stands for a
    real identity.
    """
    detections = list(detections)
    if not detections:
        return np.zeros(DIMENSIONS, dtype=np.float64)
    X = np.vstack([d.vector for d in detections]).astype(np.float64)
    return X.mean(axis=0)


def is_null_vector(v) -> bool:
    return not np.any(np.asarray(v))
