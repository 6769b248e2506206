import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from facecluster.db import ClusterStore, DetectionStore, FaceDB  # noqa: E402
from facecluster.models import Cluster, FlatCluster  # noqa: E402

DIM = 128


def unit(axis, scale=1.0):
    v = np.zeros(DIM, dtype=np.float32)
    v[axis] = scale
    return v


@pytest.fixture
def face_db(tmp_path):
    db = FaceDB(str(tmp_path / "faces.db"))
    yield db
    db.close()


@pytest.fixture
def detection_store(face_db):
    return DetectionStore(face_db)


@pytest.fixture
def cluster_store(face_db):
    return ClusterStore(face_db)


class FaceSeeder:
    """Adds synthetic faces to a FaceDB, each in its own photo unless told otherwise."""

    def __init__(self, db):
        self.db = db
        self.rng = np.random.RandomState(1234)
        self.next_file_id = 1

    def faces(self, user_id, count, axis=0, noise=0.0, cluster_id=None, size=0.1, threshold=0.0):
        out = []
        for _ in range(count):
            vec = unit(axis)
            if noise:
                vec = vec + self.rng.normal(0, noise, DIM).astype(np.float32)
            out.append(self.face(user_id, vec, cluster_id=cluster_id, size=size, threshold=threshold))
        return out

    def face(self, user_id, vector, cluster_id=None, size=0.1, threshold=0.0, file_id=None):
        if file_id is None:
            file_id = self.next_file_id
            self.next_file_id += 1
        return self.db.add_detection(user_id, file_id, vector, size, size,
                                     threshold=threshold, cluster_id=cluster_id)

    def cluster(self, user_id):
        return ClusterStore(self.db).insert(Cluster(user_id=user_id))


@pytest.fixture
def seeder(face_db):
    return FaceSeeder(face_db)


class FakeClusterer:
    """Clusterer factory returning preset flat clusters."""

    def __init__(self, flat_clusters):
        self.flat_clusters = [FlatCluster(tuple(fc)) for fc in flat_clusters]
        self.calls = []
        self.embeddings = None

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return self

    def cluster(self, embeddings):
        self.embeddings = embeddings
        return list(self.flat_clusters)
