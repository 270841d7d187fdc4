import math

import numpy as np
import pytest

from facegroup.config import GroupingConfig
from facegroup.errors import DimensionMismatch, InvalidInput
from facegroup.grouping import (
    Descriptor,
    Group,
    group_descriptors,
    limit_faces_per_image,
    select_materializable,
)


def _points(*coords, prefix="img"):
    """Descriptors from scalar or tuple coordinates, one image each."""
    out = []
    for i, c in enumerate(coords):
        vec = np.atleast_1d(np.asarray(c, dtype=np.float64))
        out.append(Descriptor(image_ref=f"{prefix}_{i}.jpg", embedding=vec))
    return out


def _members(groups):
    return [g.members for g in groups]


def _abc():
    # d(A,B)=0.25, d(A,C)=0.55, d(B,C)=0.45
    return _points((0.0, 0.0), (0.25, 0.0), (0.325, math.sqrt(0.196875)))


def test_abc_full_pass_matches_c_at_loosest_tier():
    cfg = GroupingConfig(thresholds=(0.3, 0.5, 0.6), tier_strategy="full-pass-per-tier")
    groups = group_descriptors(_abc(), cfg)
    assert _members(groups) == [[0, 1, 2]]
    assert groups[0].representative == 0


def test_abc_tighter_tiers_split_c():
    cfg = GroupingConfig(thresholds=(0.3, 0.5), tier_strategy="full-pass-per-tier")
    assert _members(group_descriptors(_abc(), cfg)) == [[0, 1], [2]]


def test_strategies_disagree_on_which_group_wins():
    # P=0 and Q=0.7 form separate groups; X is 0.5 from P and 0.2 from Q
    descriptors = _points(0.0, 0.7, 0.5)
    per_group = GroupingConfig(thresholds=(0.3, 0.6), tier_strategy="first-match-per-group")
    per_tier = GroupingConfig(thresholds=(0.3, 0.6), tier_strategy="full-pass-per-tier")
    assert _members(group_descriptors(descriptors, per_group)) == [[0, 2], [1]]
    assert _members(group_descriptors(descriptors, per_tier)) == [[0], [1, 2]]


@pytest.mark.parametrize("strategy", ["first-match-per-group", "full-pass-per-tier"])
def test_tie_break_policies(strategy):
    # X=0.4 is within 0.6 of both P=0 and Q=0.7 but closer to Q
    descriptors = _points(0.0, 0.7, 0.4)
    first = GroupingConfig(thresholds=(0.6,), tier_strategy=strategy, tie_break="first-encountered")
    nearest = GroupingConfig(thresholds=(0.6,), tier_strategy=strategy, tie_break="nearest")
    assert _members(group_descriptors(descriptors, first)) == [[0, 2], [1]]
    assert _members(group_descriptors(descriptors, nearest)) == [[0], [1, 2]]


def test_threshold_is_strict_less_than():
    descriptors = _points(0.0, 0.5)
    assert _members(group_descriptors(descriptors, GroupingConfig(thresholds=(0.5,)))) == [[0], [1]]
    assert _members(group_descriptors(descriptors, GroupingConfig(thresholds=(0.51,)))) == [[0, 1]]


def test_candidates_compare_against_original_representative():
    # Y is 0.2 from X but 0.45 from the representative P
    descriptors = _points(0.0, 0.25, 0.45)
    groups = group_descriptors(descriptors, GroupingConfig(thresholds=(0.3,)))
    assert _members(groups) == [[0, 1], [2]]
    assert [g.representative for g in groups] == [0, 2]


def test_partition_and_determinism():
    rng = np.random.default_rng(42)
    centres = rng.normal(scale=5.0, size=(4, 16))
    data = np.concatenate([c + rng.normal(scale=0.1, size=(10, 16)) for c in centres])
    data = data[rng.permutation(len(data))]
    descriptors = [Descriptor(image_ref=f"{i}.jpg", embedding=row) for i, row in enumerate(data)]
    cfg = GroupingConfig(thresholds=(1.0, 2.0))

    first = group_descriptors(descriptors, cfg)
    second = group_descriptors(descriptors, cfg)
    assert _members(first) == _members(second)
    flat = sorted(i for g in first for i in g.members)
    assert flat == list(range(len(descriptors)))
    assert len(first) == 4
    for g in first:
        assert g.members == sorted(g.members)
        assert g.representative == g.members[0]


def test_loosening_never_adds_groups_for_separated_clusters():
    descriptors = _points(0.0, 0.1, 0.35, 5.0, 5.2)
    counts = [len(group_descriptors(descriptors, GroupingConfig(thresholds=(t,))))
              for t in (0.05, 0.2, 0.4, 1.0)]
    assert counts == sorted(counts, reverse=True)
    assert counts[-1] == 2


def test_group_indices_and_labels_follow_creation_order():
    groups = group_descriptors(_points(0.0, 10.0, 20.0), GroupingConfig(thresholds=(1.0,)))
    assert [g.index for g in groups] == [0, 1, 2]
    assert [g.label for g in groups] == ["person_0", "person_1", "person_2"]


def test_empty_input_yields_no_groups():
    assert group_descriptors([], GroupingConfig()) == []


def test_dimension_mismatch_aborts_before_grouping():
    descriptors = [
        Descriptor(image_ref="a.jpg", embedding=np.zeros(128)),
        Descriptor(image_ref="b.jpg", embedding=np.zeros(128)),
        Descriptor(image_ref="c.jpg", embedding=np.zeros(512)),
    ]
    with pytest.raises(DimensionMismatch):
        group_descriptors(descriptors, GroupingConfig())


def test_descriptor_rejects_nan():
    with pytest.raises(InvalidInput):
        Descriptor(image_ref="a.jpg", embedding=np.array([0.1, float("nan")]))


def test_default_config_is_full_pass_first_encountered():
    cfg = GroupingConfig()
    assert cfg.tier_strategy == "full-pass-per-tier"
    assert cfg.tie_break == "first-encountered"
    assert cfg.thresholds == (0.3, 0.4, 0.6)


def test_limit_faces_per_image():
    descriptors = [
        Descriptor(image_ref=ref, embedding=np.array([float(i)]), face_index=i)
        for i, ref in enumerate(["a", "a", "b", "a", "b"])
    ]
    assert [d.face_index for d in limit_faces_per_image(descriptors, 1)] == [0, 2]
    assert [d.face_index for d in limit_faces_per_image(descriptors, 2)] == [0, 1, 2, 4]
    assert len(limit_faces_per_image(descriptors, None)) == 5
    with pytest.raises(ValueError):
        limit_faces_per_image(descriptors, 0)


def test_select_materializable_keeps_groups_at_or_above_min_size():
    groups = [Group(index=i, members=list(range(n))) for i, n in enumerate([1, 3, 5, 7])]
    selected = select_materializable(groups, 5)
    assert [len(g) for g in selected] == [5, 7]
    assert [g.label for g in selected] == ["person_2", "person_3"]
    assert len(select_materializable(groups, 2)) == 3
    with pytest.raises(ValueError):
        select_materializable(groups, 0)
