"""
Online grouping of face descriptors into person identities.

Descriptors are processed once, in input order.  Each one is compared
against the *representative* (first member) of every existing group and
either joins the group chosen by the configured tier strategy or starts a
new singleton group.  Groups are never merged, reordered or re-centred, so
the output depends on the order of the input list by design.

Two tier strategies are supported and selected by name:

``first-match-per-group``
    Walk the groups in creation order and accept the first group whose
    distance satisfies any tier.
``full-pass-per-tier``
    For each tier in list order, scan every group; the first tier that
    matches any group decides.

Among the groups a strategy considers acceptable, the tie-break policy
picks one: ``first-encountered`` (earliest group) or ``nearest`` (smallest
distance).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from .config import GroupingConfig
from .distance import as_embedding, distances_to
from .errors import DimensionMismatch

LOGGER = logging.getLogger(__name__)


@dataclass
class Descriptor:
    """One detected face: the image it came from and its embedding."""

    image_ref: str
    embedding: np.ndarray
    face_index: int = 0

    def __post_init__(self) -> None:
        self.embedding = as_embedding(self.embedding)

    @property
    def dim(self) -> int:
        return int(self.embedding.shape[0])


@dataclass
class Group:
    """Indices of descriptors believed to show the same person.

    ``index`` is the position of the group in creation order and never
    changes, so ``label`` stays stable after size filtering.
    """

    index: int
    members: List[int] = field(default_factory=list)

    @property
    def representative(self) -> int:
        return self.members[0]

    @property
    def label(self) -> str:
        return f"person_{self.index}"

    def __len__(self) -> int:
        return len(self.members)


class Match(NamedTuple):
    group: int
    tier: int


TieBreak = Callable[[np.ndarray, np.ndarray], int]
TierStrategy = Callable[[np.ndarray, Sequence[float], TieBreak], Optional[Match]]


def _first_encountered(candidates: np.ndarray, distances: np.ndarray) -> int:
    return int(candidates[0])


def _nearest(candidates: np.ndarray, distances: np.ndarray) -> int:
    # argmin keeps the earliest group when distances are equal
    return int(candidates[int(np.argmin(distances[candidates]))])


def _first_match_per_group(distances: np.ndarray, thresholds: Sequence[float],
                           tie_break: TieBreak) -> Optional[Match]:
    hits = distances[:, None] < np.asarray(thresholds, dtype=np.float64)[None, :]
    candidates = np.flatnonzero(hits.any(axis=1))
    if candidates.size == 0:
        return None
    group = tie_break(candidates, distances)
    return Match(group=group, tier=int(np.argmax(hits[group])))


def _full_pass_per_tier(distances: np.ndarray, thresholds: Sequence[float],
                        tie_break: TieBreak) -> Optional[Match]:
    for tier, threshold in enumerate(thresholds):
        candidates = np.flatnonzero(distances < threshold)
        if candidates.size:
            return Match(group=tie_break(candidates, distances), tier=tier)
    return None


TIE_BREAKS: Dict[str, TieBreak] = {
    "first-encountered": _first_encountered,
    "nearest": _nearest,
}

TIER_STRATEGIES: Dict[str, TierStrategy] = {
    "first-match-per-group": _first_match_per_group,
    "full-pass-per-tier": _full_pass_per_tier,
}


def _common_dim(descriptors: Sequence[Descriptor]) -> int:
    dim = descriptors[0].dim
    for desc in descriptors[1:]:
        if desc.dim != dim:
            raise DimensionMismatch(dim, desc.dim)
    return dim


def group_descriptors(descriptors: Sequence[Descriptor],
                      config: Optional[GroupingConfig] = None) -> List[Group]:
    """Assign every descriptor to exactly one group.

    Parameters
    ----------
    descriptors: sequence of Descriptor
        Faces in the order they should be considered.  All embeddings must
        have the same length.
    config: GroupingConfig, optional
        Thresholds, tier strategy and tie-break policy.  Defaults to
        :class:`GroupingConfig` defaults.

    Returns
    -------
    list of Group
        Groups in creation order.  Member indices refer to ``descriptors``.

    Raises
    ------
    DimensionMismatch
        If two descriptors have embeddings of different lengths.  Raised
        before any group is built.
    """
    config = config or GroupingConfig()
    strategy = TIER_STRATEGIES[config.tier_strategy]
    tie_break = TIE_BREAKS[config.tie_break]
    if not descriptors:
        return []
    dim = _common_dim(descriptors)
    # Row g holds the representative embedding of group g
    representatives = np.empty((len(descriptors), dim), dtype=np.float64)
    groups: List[Group] = []
    for i, desc in enumerate(descriptors):
        distances = distances_to(desc.embedding, representatives[:len(groups)])
        match = strategy(distances, config.thresholds, tie_break)
        if match is None:
            representatives[len(groups)] = desc.embedding
            groups.append(Group(index=len(groups), members=[i]))
            LOGGER.debug("Descriptor %d (%s) starts group %d", i, desc.image_ref, len(groups) - 1)
            continue
        groups[match.group].members.append(i)
        LOGGER.debug(
            "Descriptor %d (%s) joins group %d at tier %.3f (distance = %.4f)",
            i, desc.image_ref, match.group, config.thresholds[match.tier], distances[match.group],
        )
    LOGGER.info("Grouping completed: %d descriptors in %d groups", len(descriptors), len(groups))
    return groups


def limit_faces_per_image(descriptors: Sequence[Descriptor],
                          max_faces_per_image: Optional[int]) -> List[Descriptor]:
    """Keep at most ``max_faces_per_image`` descriptors per image.

    Order is preserved and the earliest descriptors of each image are the
    ones kept.  ``None`` keeps everything.
    """
    if max_faces_per_image is None:
        return list(descriptors)
    if max_faces_per_image < 1:
        raise ValueError("max_faces_per_image must be >= 1 or None")
    seen: Dict[str, int] = {}
    kept: List[Descriptor] = []
    for desc in descriptors:
        count = seen.get(desc.image_ref, 0)
        if count < max_faces_per_image:
            kept.append(desc)
        seen[desc.image_ref] = count + 1
    return kept


def select_materializable(groups: Sequence[Group], min_size: int) -> List[Group]:
    """Return the groups with at least ``min_size`` members, in order.

    Smaller groups are dropped entirely.
    """
    if min_size < 1:
        raise ValueError("min_size must be >= 1")
    return [g for g in groups if len(g) >= min_size]
