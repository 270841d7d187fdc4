"""
Tabular reports of a grouping run.

Two CSV files are written next to the person folders:

``assignments.csv``
    One row per descriptor: image, face index, group label, group size,
    distance to the group representative and whether the group was copied.
``identities.csv``
    One row per filename identity key with its photo count and whether it
    passed the frequency filter.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from .distance import euclidean_distance
from .grouping import Descriptor, Group
from .identity import IdentityReport


def assignments_frame(descriptors: Sequence[Descriptor], groups: Sequence[Group],
                      materialized: Iterable[Group] = ()) -> pd.DataFrame:
    """Build a DataFrame describing where each descriptor ended up."""
    kept = {g.index for g in materialized}
    rows = []
    for group in groups:
        rep = descriptors[group.representative]
        for idx in group.members:
            desc = descriptors[idx]
            rows.append({
                "descriptor": idx,
                "image": desc.image_ref,
                "face_index": desc.face_index,
                "group": group.label,
                "group_size": len(group),
                "representative": idx == group.representative,
                "distance": euclidean_distance(desc.embedding, rep.embedding),
                "materialized": group.index in kept,
            })
    columns = ["descriptor", "image", "face_index", "group", "group_size",
               "representative", "distance", "materialized"]
    return pd.DataFrame(rows, columns=columns).sort_values("descriptor", ignore_index=True)


def identities_frame(report: IdentityReport) -> pd.DataFrame:
    valid = set(report.valid_keys)
    rows = [{"identity": key, "count": count, "valid": key in valid}
            for key, count in report.counts().items()]
    return pd.DataFrame(rows, columns=["identity", "count", "valid"])


def write_reports(output_root: Path, assignments: pd.DataFrame, identities: pd.DataFrame) -> None:
    output_root.mkdir(parents=True, exist_ok=True)
    assignments.to_csv(output_root / "assignments.csv", index=False)
    identities.to_csv(output_root / "identities.csv", index=False)
