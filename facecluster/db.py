import logging
import sqlite3
import threading
from contextlib import contextmanager

import numpy as np

from facecluster.errors import ClusterNotFoundError, SerializationError, StorageError
from facecluster.models import Cluster, Detection
from facecluster.utils import DIMENSIONS

LOGGER = logging.getLogger(__name__)


def adapt_array(arr):
    return np.ascontiguousarray(arr, dtype=np.float32).tobytes()


def convert_array(blob):
    if blob is None or len(blob) != DIMENSIONS * 4:
        size = 0 if blob is None else len(blob)
        raise SerializationError(f"embedding blob has {size} bytes, expected {DIMENSIONS * 4}")
    arr = np.frombuffer(blob, dtype=np.float32).copy()
    if not np.all(np.isfinite(arr)):
        raise SerializationError("embedding blob contains non-finite components")
    return arr


sqlite3.register_adapter(np.ndarray, adapt_array)

_FACE_COLUMNS = "id, user_id, file_id, embedding, height, width, cluster_id, threshold"


def _row_to_detection(row) -> Detection:
    fid, user_id, file_id, blob, height, width, cluster_id, threshold = row
    return Detection(
        id=fid,
        user_id=user_id,
        file_id=file_id,
        vector=convert_array(blob),
        height=height,
        width=width,
        cluster_id=cluster_id,
        threshold=threshold or 0.0,
    )


class FaceDB:
    def __init__(self, path: str):
        self.path = path
        # Allow use from worker thread
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open face database {path}: {e}") from e
        self.lock = threading.Lock()
        self._migrate()

    @contextmanager
    def cursor(self):
        """Locked cursor; commits on success, wraps sqlite errors in StorageError."""
        with self.lock:
            cur = self.conn.cursor()
            try:
                yield cur
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StorageError(str(e)) from e

    def close(self):
        with self.lock:
            self.conn.close()

    def _migrate(self):
        with self.cursor() as cur:
            cur.execute("""
            CREATE TABLE IF NOT EXISTS clusters(
                id INTEGER PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT ''
            )""")
            cur.execute("""
            CREATE TABLE IF NOT EXISTS faces(
                id INTEGER PRIMARY KEY,
                user_id TEXT NOT NULL,
                file_id INTEGER NOT NULL,
                embedding BLOB NOT NULL,
                height REAL NOT NULL,
                width REAL NOT NULL,
                cluster_id INTEGER DEFAULT NULL,
                threshold REAL NOT NULL DEFAULT 0.0,
                FOREIGN KEY(cluster_id) REFERENCES clusters(id)
            )""")
            cur.execute("CREATE INDEX IF NOT EXISTS faces_user_cluster ON faces(user_id, cluster_id)")

    # ---------- Faces ----------
    def add_detection(self, user_id: str, file_id: int, embedding, height: float, width: float,
                      threshold: float = 0.0, cluster_id=None) -> Detection:
        det = Detection(None, user_id, file_id, embedding, height, width, cluster_id, threshold)
        with self.cursor() as cur:
            cur.execute(
                "INSERT INTO faces(user_id, file_id, embedding, height, width, cluster_id, threshold) "
                "VALUES(?,?,?,?,?,?,?)",
                (user_id, file_id, det.vector, height, width, cluster_id, threshold),
            )
            det.id = cur.lastrowid
        return det

    def get_detection(self, detection_id: int):
        with self.cursor() as cur:
            cur.execute(f"SELECT {_FACE_COLUMNS} FROM faces WHERE id=?", (detection_id,))
            row = cur.fetchone()
        return _row_to_detection(row) if row else None

    # ---------- Clusters ----------
    def list_clusters(self, user_id: str):
        with self.cursor() as cur:
            cur.execute("""
                SELECT c.id, c.title, COUNT(f.id) as cnt
                FROM clusters c
                LEFT JOIN faces f ON f.cluster_id = c.id
                WHERE c.user_id=?
                GROUP BY c.id, c.title
                ORDER BY cnt DESC, c.id
            """, (user_id,))
            rows = cur.fetchall()
        return rows

    def rename_cluster(self, cluster_id: int, new_title: str):
        with self.cursor() as cur:
            cur.execute("UPDATE clusters SET title=? WHERE id=?", (new_title, cluster_id))
            if cur.rowcount == 0:
                raise ClusterNotFoundError(cluster_id)


class DetectionStore:
    """Face detection rows of a FaceDB."""

    def __init__(self, db: FaceDB):
        self.db = db

    def _select(self, where, params):
        with self.db.cursor() as cur:
            cur.execute(f"SELECT {_FACE_COLUMNS} FROM faces WHERE {where}", params)
            rows = cur.fetchall()
        return [_row_to_detection(r) for r in rows]

    def find_unclustered_by_user_id(self, user_id: str, limit: int = 0):
        # limit 0 means no limit
        if limit > 0:
            return self._select("user_id=? AND cluster_id IS NULL ORDER BY id LIMIT ?", (user_id, limit))
        return self._select("user_id=? AND cluster_id IS NULL ORDER BY id", (user_id,))

    def find_cluster_sample(self, cluster_id: int, limit: int):
        return self._select("cluster_id=? ORDER BY RANDOM() LIMIT ?", (cluster_id, limit))

    def find_by_cluster_id(self, cluster_id: int):
        return self._select("cluster_id=? ORDER BY id", (cluster_id,))

    def assoc_with_cluster(self, detection: Detection, cluster: Cluster):
        detection.cluster_id = cluster.id
        self.update(detection)

    def update(self, detection: Detection):
        with self.db.cursor() as cur:
            cur.execute(
                "UPDATE faces SET user_id=?, file_id=?, embedding=?, height=?, width=?, cluster_id=?, threshold=? "
                "WHERE id=?",
                (detection.user_id, detection.file_id, detection.vector, detection.height, detection.width,
                 detection.cluster_id, detection.threshold, detection.id),
            )


class ClusterStore:
    """Cluster rows of a FaceDB."""

    def __init__(self, db: FaceDB):
        self.db = db

    def find_by_user_id(self, user_id: str):
        with self.db.cursor() as cur:
            cur.execute("SELECT id, user_id, title FROM clusters WHERE user_id=? ORDER BY id", (user_id,))
            rows = cur.fetchall()
        return [Cluster(id=cid, user_id=uid, title=title) for cid, uid, title in rows]

    def find(self, cluster_id: int) -> Cluster:
        with self.db.cursor() as cur:
            cur.execute("SELECT id, user_id, title FROM clusters WHERE id=?", (cluster_id,))
            row = cur.fetchone()
        if row is None:
            raise ClusterNotFoundError(cluster_id)
        return Cluster(id=row[0], user_id=row[1], title=row[2])

    def insert(self, cluster: Cluster) -> Cluster:
        with self.db.cursor() as cur:
            cur.execute("INSERT INTO clusters(user_id, title) VALUES(?,?)", (cluster.user_id, cluster.title))
            cluster.id = cur.lastrowid
        LOGGER.debug("Created cluster %s for user %s", cluster.id, cluster.user_id)
        return cluster
