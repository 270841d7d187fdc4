"""
Configuration structures for the face grouping pipeline.

Two dataclasses describe a run: :class:`GroupingConfig` holds the policy
consumed by the grouping core (thresholds, strategy, size cutoff) and
:class:`RunConfig` adds everything the surrounding pipeline needs (paths,
model, database).

The :func:`parse_args` function converts command line arguments into a
:class:`RunConfig` instance.
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

TIER_STRATEGY_NAMES = ("first-match-per-group", "full-pass-per-tier")
TIE_BREAK_NAMES = ("first-encountered", "nearest")

DEFAULT_THRESHOLDS: Tuple[float, ...] = (0.3, 0.4, 0.6)

LOGGER = logging.getLogger(__name__)


@dataclass
class GroupingConfig:
    """Policy for grouping descriptors into identities.

    Attributes
    ----------
    thresholds: tuple of float
        Euclidean distance cutoffs, tried in list order, normally ascending
        (a tier not larger than an earlier one is logged as unreachable).
        A descriptor is
        accepted by a group when its distance to the group representative
        is strictly below a tier.  The defaults suit 128-d face descriptors;
        they must be retuned for models with a different distance scale.
    tier_strategy: str
        ``"full-pass-per-tier"`` (scan every group with a tier before moving
        to the next tier) or ``"first-match-per-group"`` (try every tier on
        a group before moving to the next group).
    tie_break: str
        ``"first-encountered"`` picks the earliest created acceptable group;
        ``"nearest"`` picks the acceptable group with the smallest distance.
    max_faces_per_image: int or None
        Number of faces taken from each image.  ``None`` takes all of them.
    min_group_size: int
        Groups with fewer members are not copied to the output.
    identity_min_count: int
        Filename identity keys occurring more than this many times are
        reported as valid persons (diagnostic only).
    identity_separators: str
        Characters that end the identity key in a filename.
    """
    thresholds: Tuple[float, ...] = DEFAULT_THRESHOLDS
    tier_strategy: str = "full-pass-per-tier"
    tie_break: str = "first-encountered"
    max_faces_per_image: Optional[int] = 1
    min_group_size: int = 2
    identity_min_count: int = 1
    identity_separators: str = "_- ."

    def __post_init__(self) -> None:
        self.thresholds = tuple(float(t) for t in self.thresholds)
        if not self.thresholds:
            raise ValueError("at least one threshold is required")
        for t in self.thresholds:
            if not math.isfinite(t) or t <= 0:
                raise ValueError(f"thresholds must be positive finite numbers, got {t}")
        shadowed = self.shadowed_thresholds()
        if shadowed:
            LOGGER.warning(
                "Thresholds %s follow a looser or equal tier and can never be the first to match; "
                "list tiers in ascending order", ", ".join(f"{t:g}" for t in shadowed),
            )
        if self.tier_strategy not in TIER_STRATEGY_NAMES:
            raise ValueError(f"unknown tier strategy {self.tier_strategy!r}; "
                             f"expected one of {', '.join(TIER_STRATEGY_NAMES)}")
        if self.tie_break not in TIE_BREAK_NAMES:
            raise ValueError(f"unknown tie-break {self.tie_break!r}; "
                             f"expected one of {', '.join(TIE_BREAK_NAMES)}")
        if self.max_faces_per_image is not None and self.max_faces_per_image < 1:
            raise ValueError("max_faces_per_image must be >= 1 or None")
        if self.min_group_size < 1:
            raise ValueError("min_group_size must be >= 1")
        if self.identity_min_count < 0:
            raise ValueError("identity_min_count must be >= 0")

    def shadowed_thresholds(self) -> Tuple[float, ...]:
        """Tiers not strictly larger than some earlier tier."""
        shadowed = []
        loosest = -math.inf
        for t in self.thresholds:
            if t <= loosest:
                shadowed.append(t)
            loosest = max(loosest, t)
        return tuple(shadowed)

    def as_dict(self) -> Dict[str, Any]:
        """JSON-serialisable view, used when recording a run."""
        data = asdict(self)
        data["thresholds"] = list(self.thresholds)
        return data


@dataclass
class RunConfig:
    """Parameters controlling a single pipeline run.

    Attributes
    ----------
    input_dir: Path
        Directory containing photos to process (searched recursively).
    output_root: Path
        Directory receiving one ``person_<n>`` folder per kept group plus
        the CSV reports.
    db_path: Optional[Path]
        SQLite database recording run metadata.  No database is written
        when ``None``.
    model_name: str
        InsightFace model package used to detect and embed faces.
    min_face_size: int
        Faces with a bounding box side smaller than this are ignored.
    use_gpu: bool
        Whether to request the CUDA execution provider.
    grouping: GroupingConfig
        Policy passed to the grouping core.
    command_line: Optional[str]
        Original command line invocation, recorded for reproducibility.
    """
    input_dir: Path
    output_root: Path
    db_path: Optional[Path] = None
    model_name: str = "buffalo_l"
    min_face_size: int = 40
    use_gpu: bool = True
    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    command_line: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def parse_args(argv: Optional[list[str]] = None) -> RunConfig:
    """Parse command line arguments and return a :class:`RunConfig` instance.

    Parameters
    ----------
    argv: list of str, optional
        List of command line arguments.  If omitted, :mod:`sys.argv` will be
        used.  This parameter facilitates testing.
    """
    parser = argparse.ArgumentParser(
        prog="facegroup",
        description="Group photos by the person pictured and copy them into per-person folders",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", dest="input_dir", type=Path, required=True,
                        help="Folder containing the photos")
    parser.add_argument("--output", dest="output_root", type=Path, default=Path("output"),
                        help="Folder receiving person_<n> directories and reports")
    parser.add_argument("--db", dest="db_path", type=Path, default=None,
                        help="SQLite database recording run metadata")
    parser.add_argument("--model", dest="model_name", type=str, default="buffalo_l",
                        help="InsightFace model package")
    parser.add_argument("--min-face-size", dest="min_face_size", type=int, default=40,
                        help="Discard faces smaller than this many pixels")
    parser.add_argument("--cpu", dest="use_gpu", action="store_false",
                        help="Run the face model on CPU only")
    parser.add_argument("--thresholds", dest="thresholds", type=float, nargs="+",
                        default=list(DEFAULT_THRESHOLDS),
                        help="Distance tiers, tried in the given order")
    parser.add_argument("--tier-strategy", dest="tier_strategy", choices=TIER_STRATEGY_NAMES,
                        default="full-pass-per-tier",
                        help="How tiers and groups are scanned")
    parser.add_argument("--tie-break", dest="tie_break", choices=TIE_BREAK_NAMES,
                        default="first-encountered",
                        help="Which acceptable group wins")
    parser.add_argument("--all-faces", dest="all_faces", action="store_true",
                        help="Use every detected face instead of only the first per image")
    parser.add_argument("--min-group-size", dest="min_group_size", type=int, default=2,
                        help="Groups smaller than this are not copied")
    parser.add_argument("--identity-min-count", dest="identity_min_count", type=int, default=1,
                        help="Report filename identities occurring more than this many times")
    parser.add_argument("--resize-only", dest="resize_only", action="store_true",
                        help="Write resized copies of the input photos and exit")
    parser.add_argument("--resize-width", dest="resize_width", type=int, default=200,
                        help="Width used by --resize-only")
    parser.add_argument("--resize-height", dest="resize_height", type=int, default=300,
                        help="Height used by --resize-only")
    parser.add_argument("-v", "--verbose", dest="verbose", action="store_true",
                        help="Log every distance comparison")
    args = parser.parse_args(argv)

    try:
        grouping = GroupingConfig(
            thresholds=tuple(args.thresholds),
            tier_strategy=args.tier_strategy,
            tie_break=args.tie_break,
            max_faces_per_image=None if args.all_faces else 1,
            min_group_size=args.min_group_size,
            identity_min_count=args.identity_min_count,
        )
    except ValueError as exc:
        parser.error(str(exc))
    if args.resize_width < 1 or args.resize_height < 1:
        parser.error("--resize-width and --resize-height must be positive")

    return RunConfig(
        input_dir=args.input_dir,
        output_root=args.output_root,
        db_path=args.db_path,
        model_name=args.model_name,
        min_face_size=args.min_face_size,
        use_gpu=args.use_gpu,
        grouping=grouping,
        command_line=" ".join([parser.prog] + list(sys.argv[1:] if argv is None else argv)),
        extra={
            "resize_only": args.resize_only,
            "resize_size": (args.resize_width, args.resize_height),
            "verbose": args.verbose,
        },
    )
