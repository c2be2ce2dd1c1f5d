"""
Analytics cluster client.

Sessions, frame handles and the keyed store that every workflow step
talks to.
"""

from censusfit.cluster.frame import Frame, bucket_breaks
from censusfit.cluster.session import ClusterSession, init_cluster
from censusfit.cluster.store import ColumnType

__all__ = [
    "ClusterSession",
    "ColumnType",
    "Frame",
    "bucket_breaks",
    "init_cluster",
]
