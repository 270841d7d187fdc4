import numpy as np

from facegroup.grouping import Descriptor
from facegroup.identity import (
    build_identity_report,
    bucketize,
    filter_by_min_count,
    identity_key,
)


def _descriptors(*refs):
    return [Descriptor(image_ref=ref, embedding=np.zeros(4)) for ref in refs]


def test_identity_key_uses_token_before_first_separator():
    assert identity_key("/photos/alice_001.jpg") == "alice"
    assert identity_key("bob-beach-2019.png") == "bob"
    assert identity_key("carol smith.jpeg") == "carol"
    assert identity_key("dave.jpg") == "dave"
    assert identity_key("erin_x.jpg", separators="") == "erin_x"


def test_bucketize_preserves_order():
    descriptors = _descriptors("bob_1.jpg", "alice_1.jpg", "bob_2.jpg", "carol.jpg", "bob_3.jpg")
    buckets = bucketize(descriptors)
    assert list(buckets) == ["bob", "alice", "carol"]
    assert buckets["bob"] == [0, 2, 4]


def test_filter_by_min_count_is_strict():
    buckets = {"bob": [0, 2, 4], "alice": [1], "carol": [3, 5]}
    assert filter_by_min_count(buckets, 1) == ["bob", "carol"]
    assert filter_by_min_count(buckets, 2) == ["bob"]
    assert filter_by_min_count(buckets, 3) == []


def test_custom_key_fn():
    descriptors = _descriptors("a/x.jpg", "b/y.jpg", "a/z.jpg")
    buckets = bucketize(descriptors, key_fn=lambda ref: ref.split("/")[0])
    assert buckets == {"a": [0, 2], "b": [1]}


def test_identity_report():
    descriptors = _descriptors("bob_1.jpg", "bob_2.jpg", "alice.jpg")
    report = build_identity_report(descriptors, min_count=1)
    assert report.valid_keys == ["bob"]
    assert report.counts() == {"bob": 2, "alice": 1}
