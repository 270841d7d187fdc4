"""
Top-level package for grouping photos by the person pictured.

The core is a single-pass grouping engine over face descriptors; the rest of
the package is glue that feeds it and consumes its output:

- :mod:`facegroup.errors` – exceptions raised by the core.
- :mod:`facegroup.distance` – Euclidean distance between descriptors.
- :mod:`facegroup.grouping` – descriptors, groups and the online grouping engine.
- :mod:`facegroup.identity` – filename-based identity frequency diagnostics.
- :mod:`facegroup.config` – dataclasses for run configuration and the argument parser.
- :mod:`facegroup.images` – listing input photos and batch resizing.
- :mod:`facegroup.embedders` – InsightFace wrapper producing descriptors.
- :mod:`facegroup.materialize` – copying groups into ``person_<n>`` folders.
- :mod:`facegroup.report` – CSV reports of assignments and identities.
- :mod:`facegroup.db` – SQLite ledger of runs and their groups.
- :mod:`facegroup.pipeline` – orchestrates a full run.

You can run the pipeline from the command line using the ``facegroup``
script installed by this package.
"""

from .config import GroupingConfig, RunConfig
from .distance import euclidean_distance
from .errors import DimensionMismatch, FaceGroupError, InvalidInput
from .grouping import (
    Descriptor,
    Group,
    group_descriptors,
    limit_faces_per_image,
    select_materializable,
)
from .identity import bucketize, filter_by_min_count, identity_key

__all__ = [
    "GroupingConfig",
    "RunConfig",
    "euclidean_distance",
    "DimensionMismatch",
    "FaceGroupError",
    "InvalidInput",
    "Descriptor",
    "Group",
    "group_descriptors",
    "limit_faces_per_image",
    "select_materializable",
    "bucketize",
    "filter_by_min_count",
    "identity_key",
]
