from collections import Counter

from facecluster.analyzer import FaceClusterAnalyzer


def test_full_run_with_real_clusterer_keeps_people_apart(seeder, detection_store, cluster_store):
    owner = {}
    for person in range(3):
        for det in seeder.faces("alice", 60, axis=person, noise=0.01):
            owner[det.id] = person

    result = FaceClusterAnalyzer(detection_store, cluster_store).calculate_clusters("alice")

    assert not result.skipped
    assert result.assigned > 0
    assert result.clusters_created >= 3
    people = set()
    for cluster in cluster_store.find_by_user_id("alice"):
        members = detection_store.find_by_cluster_id(cluster.id)
        persons = Counter(owner[d.id] for d in members)
        assert len(persons) == 1
        people |= set(persons)
    assert people == {0, 1, 2}


def test_second_run_without_new_faces_changes_nothing(seeder, detection_store, cluster_store, face_db):
    seeder.faces("alice", 130, axis=0, noise=0.01)
    analyzer = FaceClusterAnalyzer(detection_store, cluster_store)
    analyzer.calculate_clusters("alice")
    before = face_db.list_clusters("alice")

    result = analyzer.calculate_clusters("alice")

    assert result.skipped
    assert face_db.list_clusters("alice") == before
