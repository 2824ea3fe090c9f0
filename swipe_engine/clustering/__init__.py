"""Clustering: DBSCAN / k-means behind one engine, matching and labeling."""

from .dbscan import NOISE, dbscan
from .engine import NOISE_CLUSTER_ID, ClusterEngine
from .kmeans import kmeans
from .matcher import ClusterMatcher
from .quality import cohesion_and_radius, pass_quality
from .topics import assign_stability, label_cluster_topics
