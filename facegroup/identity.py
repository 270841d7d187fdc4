"""
Filename-based identity hints.

Photos are often named after the person they show (``alice_001.jpg``,
``bob-beach.png``).  This module buckets descriptors by the token before
the first separator in the file name and reports which tokens occur often
enough to look like real people.  The result is a diagnostic only: the
grouping engine never consults it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Callable, Dict, Iterable, List

LOGGER = logging.getLogger(__name__)

DEFAULT_SEPARATORS = "_- ."


def identity_key(image_ref: str, separators: str = DEFAULT_SEPARATORS) -> str:
    """Return the naive identity key for an image reference.

    >>> identity_key("/photos/alice_001.jpg")
    'alice'
    """
    stem = PurePath(image_ref).stem
    if not separators:
        return stem
    return re.split("[" + re.escape(separators) + "]", stem, maxsplit=1)[0]


def bucketize(descriptors: Iterable, key_fn: Callable[[str], str] = identity_key) -> Dict[str, List[int]]:
    """Map each identity key to the indices of the descriptors sharing it.

    Keys keep first-seen order and each bucket lists indices in input
    order.  Items only need an ``image_ref`` attribute.
    """
    buckets: Dict[str, List[int]] = {}
    for idx, desc in enumerate(descriptors):
        buckets.setdefault(key_fn(desc.image_ref), []).append(idx)
    return buckets


def filter_by_min_count(buckets: Dict[str, List[int]], min_count: int) -> List[str]:
    """Keys whose bucket holds strictly more than ``min_count`` members."""
    return [key for key, members in buckets.items() if len(members) > min_count]


@dataclass
class IdentityReport:
    buckets: Dict[str, List[int]]
    min_count: int
    valid_keys: List[str] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {key: len(members) for key, members in self.buckets.items()}


def build_identity_report(descriptors: Iterable, min_count: int,
                          separators: str = DEFAULT_SEPARATORS) -> IdentityReport:
    """Bucket ``descriptors`` by filename and select the frequent keys."""
    buckets = bucketize(descriptors, key_fn=lambda ref: identity_key(ref, separators))
    valid = filter_by_min_count(buckets, min_count)
    LOGGER.info("Filename identities: %d distinct, %d with more than %d photos",
                len(buckets), len(valid), min_count)
    return IdentityReport(buckets=buckets, min_count=min_count, valid_keys=valid)
