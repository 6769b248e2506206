import logging

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components
from sklearn.cluster import HDBSCAN
from sklearn.neighbors import NearestNeighbors

from facecluster.models import FlatCluster

LOGGER = logging.getLogger(__name__)


class Clusterer:
    def __init__(self, min_cluster_size=5, min_samples=3, min_cluster_separation=0.0, max_edge_length=0.5):
        self.min_cluster_size = min_cluster_size
        self.min_samples = min_samples
        self.min_cluster_separation = min_cluster_separation
        self.max_edge_length = max_edge_length

    def cluster(self, embeddings):
        """Group embeddings into flat clusters of dataset indices.

        Points are first split into components connected by
        mutual-reachability edges no longer than ``max_edge_length`` (the
        same as cutting every longer edge of the minimum spanning tree).
        Each large enough component is then clustered with HDBSCAN and
        kept whole unless it splits into several clusters. Indices that
        end up in no cluster are noise.
        """
        if len(embeddings) == 0:
            return []
        X = np.vstack(embeddings).astype(np.float64)
        n = X.shape[0]

        out = []
        for members in self._components(X):
            if len(members) < self.min_cluster_size:
                continue
            out.extend(self._cluster_component(X, members))
        LOGGER.debug("Clustered %d points into %d flat clusters", n, len(out))
        return out

    def _core_distances(self, X):
        k = min(self.min_samples, X.shape[0])
        nn = NearestNeighbors(n_neighbors=k).fit(X)
        dists, _ = nn.kneighbors(X)
        # kneighbors counts the query point itself as its first neighbour
        return dists[:, -1]

    def _components(self, X):
        n = X.shape[0]
        if self.max_edge_length is None:
            return [np.arange(n)]

        core = self._core_distances(X)
        nn = NearestNeighbors(radius=self.max_edge_length).fit(X)
        dists, neighbours = nn.radius_neighbors(X)

        rows = np.repeat(np.arange(n), [len(nb) for nb in neighbours])
        cols = np.concatenate(neighbours).astype(np.intp)
        d = np.concatenate(dists)
        # mutual reachability of every pair within the radius
        keep = (rows != cols) & (np.maximum(np.maximum(core[rows], core[cols]), d) <= self.max_edge_length)
        graph = csr_matrix((np.ones(int(keep.sum())), (rows[keep], cols[keep])), shape=(n, n))
        n_comp, labels = connected_components(graph, directed=False)

        groups = [[] for _ in range(n_comp)]
        for idx, lab in enumerate(labels):
            groups[lab].append(idx)
        return [np.asarray(g) for g in groups]

    def _cluster_component(self, X, members):
        if len(members) <= self.min_samples:
            return [FlatCluster(tuple(int(i) for i in members))]

        db = HDBSCAN(
            min_cluster_size=self.min_cluster_size,
            min_samples=self.min_samples,
            cluster_selection_epsilon=float(self.min_cluster_separation),
            metric="euclidean",
            allow_single_cluster=True,
            copy=True,
        )
        labels = db.fit_predict(X[members])

        groups = {}
        for idx, lab in zip(members, labels):
            if lab < 0:
                continue
            groups.setdefault(int(lab), []).append(int(idx))
        # a single selected cluster only labels its densest points; the
        # component is density-connected under the edge cap, so take it whole
        if len(groups) <= 1:
            return [FlatCluster(tuple(int(i) for i in members))]
        return [FlatCluster(tuple(groups[lab])) for lab in sorted(groups)]
