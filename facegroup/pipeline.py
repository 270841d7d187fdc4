"""
High-level orchestration of a face grouping run.

This module ties together the lower-level components: scanning images,
detection/embedding, grouping, copying the kept groups and writing the
reports.  When a database path is configured the run and its groups are
recorded there, including failed runs.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import RunConfig
from .db import init_db, insert_groups, record_run_end, record_run_start, update_run_status
from .embedders import Embedder, extract_descriptors, get_embedder
from .grouping import (
    Descriptor, Group, group_descriptors, limit_faces_per_image, select_materializable
)
from .identity import IdentityReport, build_identity_report
from .images import list_images
from .materialize import materialize_groups
from .report import assignments_frame, identities_frame, write_reports

LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a run produced."""
    n_images: int
    descriptors: List[Descriptor] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)
    materialized: List[Group] = field(default_factory=list)
    identity: Optional[IdentityReport] = None
    copied: Dict[str, List[Path]] = field(default_factory=dict)
    run_id: Optional[int] = None


def _group_records(groups: List[Group], materialized: List[Group],
                   assignments: pd.DataFrame) -> List[Dict[str, Any]]:
    kept = {g.index for g in materialized}
    by_descriptor = assignments.set_index("descriptor")
    records = []
    for group in groups:
        rows = by_descriptor.loc[group.members]
        records.append({
            "group_index": group.index,
            "label": group.label,
            "size": len(group),
            "materialized": group.index in kept,
            "members": [
                {
                    "descriptor_index": int(idx),
                    "image_path": str(row.image),
                    "face_index": int(row.face_index),
                    "distance": float(row.distance),
                }
                for idx, row in zip(group.members, rows.itertuples(index=False))
            ],
        })
    return records


def run_pipeline(config: RunConfig, embedder: Optional[Embedder] = None) -> PipelineResult:
    """Run a grouping pass over ``config.input_dir``.

    Parameters
    ----------
    config: RunConfig
        Configuration settings for this run.
    embedder: Embedder, optional
        Face extractor to use.  When omitted an InsightFace embedder is
        built from ``config``.

    Raises
    ------
    FaceGroupError
        When descriptors are inconsistent (mismatched lengths, non-finite
        values).  Nothing is copied in that case and the run is recorded as
        ``failed``.
    """
    grouping_cfg = config.grouping
    paths = list_images(config.input_dir)
    LOGGER.info("Found %d images in %s", len(paths), config.input_dir)
    result = PipelineResult(n_images=len(paths))

    with contextlib.ExitStack() as stack:
        conn = None
        if config.db_path is not None:
            conn = stack.enter_context(init_db(config.db_path).connect())
            result.run_id = record_run_start(
                conn,
                input_dir=config.input_dir,
                output_root=config.output_root,
                model_name=config.model_name,
                parameters=grouping_cfg.as_dict(),
                command_line=config.command_line,
            )
        try:
            if embedder is None:
                embedder = get_embedder(config.model_name, min_face_size=config.min_face_size,
                                        use_gpu=config.use_gpu)
            descriptors = extract_descriptors(paths, embedder)
            descriptors = limit_faces_per_image(descriptors, grouping_cfg.max_faces_per_image)
            result.descriptors = descriptors
            if not descriptors:
                LOGGER.warning("No faces detected in %s", config.input_dir)
                if conn is not None:
                    record_run_end(conn, result.run_id, status="no_faces",
                                   n_images=len(paths), n_descriptors=0)
                return result

            result.identity = build_identity_report(
                descriptors, grouping_cfg.identity_min_count, grouping_cfg.identity_separators
            )
            result.groups = group_descriptors(descriptors, grouping_cfg)
            result.materialized = select_materializable(result.groups, grouping_cfg.min_group_size)
            for group in result.groups:
                if len(group) < grouping_cfg.min_group_size:
                    LOGGER.debug("Skipping group %d - less than %d images found",
                                 group.index, grouping_cfg.min_group_size)

            result.copied = materialize_groups(result.materialized, descriptors, config.output_root)
            assignments = assignments_frame(descriptors, result.groups, result.materialized)
            write_reports(config.output_root, assignments, identities_frame(result.identity))
        except Exception as exc:
            LOGGER.error("Run failed: %s", exc)
            if conn is not None:
                update_run_status(conn, result.run_id, "failed", notes=str(exc))
            raise

        if conn is not None:
            insert_groups(conn, result.run_id,
                          _group_records(result.groups, result.materialized, assignments))
            record_run_end(
                conn, result.run_id, status="done",
                n_images=len(paths),
                n_descriptors=len(descriptors),
                n_groups=len(result.groups),
                n_materialized=len(result.materialized),
            )

    LOGGER.info("Image sorting completed: %d groups, %d copied to %s",
                len(result.groups), len(result.materialized), config.output_root)
    return result
