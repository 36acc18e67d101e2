from netlayout.clustering.distances import DistanceMatrix, get_distances
from netlayout.clustering.engine import Cluster, ClusteringEngine

__all__ = ["Cluster", "ClusteringEngine", "DistanceMatrix", "get_distances"]
