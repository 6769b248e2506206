# main.py: run incremental face clustering against a face database
# Flow: cluster -> unclustered faces are grouped and merged into existing people
#       prune   -> drop duplicate faces of the same photo from each person
# Requires: numpy, scikit-learn, scipy

import argparse
import logging
import sys

from facecluster import config
from facecluster.analyzer import FaceClusterAnalyzer
from facecluster.db import ClusterStore, DetectionStore, FaceDB
from facecluster.errors import FaceClusterError

LOGGER = logging.getLogger("facecluster")


def build_parser():
    parser = argparse.ArgumentParser(description="Incremental face clustering")
    parser.add_argument("--db", default=config.DB_PATH, help="path to the face database")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("cluster", help="cluster a user's unclustered faces")
    p.add_argument("--user", required=True)
    p.add_argument("--batch-size", type=int, default=config.BATCH_SIZE,
                   help="max unclustered faces per run (0 = all)")
    p.add_argument("--min-dataset-size", type=int, default=config.MIN_DATASET_SIZE)

    p = sub.add_parser("prune", help="remove duplicate faces per photo from clusters")
    p.add_argument("--user", required=True)

    p = sub.add_parser("clusters", help="list a user's clusters")
    p.add_argument("--user", required=True)
    return parser


def run(args):
    db = FaceDB(args.db)
    try:
        detections, clusters = DetectionStore(db), ClusterStore(db)
        if args.command == "cluster":
            analyzer = FaceClusterAnalyzer(detections, clusters, config.default_parameters(args.min_dataset_size))
            result = analyzer.calculate_clusters(args.user, args.batch_size)
            if result.skipped:
                print(f"Not enough faces to cluster ({result.detections_found}).")
            else:
                print(f"Assigned {result.assigned} faces: {result.clusters_created} new, "
                      f"{result.clusters_merged} merged, {result.clusters_discarded} discarded, "
                      f"{result.pruned} pruned.")
        elif args.command == "prune":
            analyzer = FaceClusterAnalyzer(detections, clusters)
            print(f"Released {analyzer.prune_clusters(args.user)} duplicate faces.")
        elif args.command == "clusters":
            for cid, title, cnt in db.list_clusters(args.user):
                print(f"{cid}\t{title or f'Person #{cid}'}\t{cnt}")
    finally:
        db.close()


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        run(args)
    except FaceClusterError as e:
        LOGGER.error("Clustering failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
