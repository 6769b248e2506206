from collections import Counter

from conftest import unit
from facecluster.models import Detection
from facecluster.pruner import ClusterPruner, find_files_with_duplicate_faces


def _files_per_cluster(detection_store, cluster_store, user_id):
    return {
        c.id: Counter(d.file_id for d in detection_store.find_by_cluster_id(c.id))
        for c in cluster_store.find_by_user_id(user_id)
    }


def test_find_files_with_duplicate_faces():
    dets = [Detection(i, "alice", fid, unit(0), 0.1, 0.1) for i, fid in enumerate([1, 2, 2, 3, 3, 3], start=1)]
    dupes = find_files_with_duplicate_faces(dets)
    assert sorted(dupes) == [2, 3]
    assert [d.id for d in dupes[3]] == [4, 5, 6]


def test_prune_keeps_face_closest_to_centroid(seeder, detection_store, cluster_store):
    cluster = seeder.cluster("alice")
    seeder.faces("alice", 5, axis=0, cluster_id=cluster.id)
    # three faces of one photo; centroid of all eight lies at e0 + 0.3875 e1
    near = seeder.face("alice", unit(0) + unit(1, 0.1), cluster_id=cluster.id, file_id=999)
    mid = seeder.face("alice", unit(0) + unit(1, 1.0), cluster_id=cluster.id, file_id=999)
    far = seeder.face("alice", unit(0) + unit(1, 2.0), cluster_id=cluster.id, file_id=999)

    released = ClusterPruner(detection_store, cluster_store).prune("alice")

    assert released == 2
    assert seeder.db.get_detection(near.id).cluster_id == cluster.id
    assert seeder.db.get_detection(mid.id).cluster_id is None
    assert seeder.db.get_detection(far.id).cluster_id is None
    assert len(detection_store.find_by_cluster_id(cluster.id)) == 6


def test_prune_sweeps_every_cluster_and_is_idempotent(seeder, detection_store, cluster_store):
    for axis in range(3):
        cluster = seeder.cluster("alice")
        seeder.faces("alice", 4, axis=axis, noise=0.01, cluster_id=cluster.id)
        for _ in range(2):
            seeder.face("alice", unit(axis), cluster_id=cluster.id, file_id=500 + axis)

    pruner = ClusterPruner(detection_store, cluster_store)
    assert pruner.prune("alice") == 3

    for counts in _files_per_cluster(detection_store, cluster_store, "alice").values():
        assert max(counts.values()) == 1

    assert pruner.prune("alice") == 0


def test_prune_ties_keep_lowest_detection_id(seeder, detection_store, cluster_store):
    cluster = seeder.cluster("alice")
    first = seeder.face("alice", unit(0), cluster_id=cluster.id, file_id=7)
    second = seeder.face("alice", unit(0), cluster_id=cluster.id, file_id=7)

    assert ClusterPruner(detection_store, cluster_store).prune("alice") == 1
    assert seeder.db.get_detection(first.id).cluster_id == cluster.id
    assert seeder.db.get_detection(second.id).cluster_id is None


def test_same_photo_in_different_clusters_is_allowed(seeder, detection_store, cluster_store):
    a, b = seeder.cluster("alice"), seeder.cluster("alice")
    seeder.face("alice", unit(0), cluster_id=a.id, file_id=3)
    seeder.face("alice", unit(1), cluster_id=b.id, file_id=3)
    assert ClusterPruner(detection_store, cluster_store).prune("alice") == 0


def test_prune_only_touches_the_users_clusters(seeder, detection_store, cluster_store):
    other = seeder.cluster("bob")
    seeder.face("bob", unit(0), cluster_id=other.id, file_id=1)
    seeder.face("bob", unit(0, 2.0), cluster_id=other.id, file_id=1)
    assert ClusterPruner(detection_store, cluster_store).prune("alice") == 0
    assert len(detection_store.find_by_cluster_id(other.id)) == 2


def test_prune_without_clusters(detection_store, cluster_store):
    assert ClusterPruner(detection_store, cluster_store).prune("nobody") == 0
