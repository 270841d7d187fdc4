"""
Copying grouped photos into per-person folders.

Each kept group becomes ``<output_root>/person_<n>`` where ``n`` is the
group's creation index, so folder numbers have gaps where small groups
were dropped.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, List, Sequence, Set

from .grouping import Descriptor, Group

LOGGER = logging.getLogger(__name__)


def _unique_name(src: Path, used: Set[str]) -> str:
    """File name for ``src`` inside a group folder, suffixed ``_<n>`` on collision."""
    name = src.name
    n = 1
    while name in used:
        name = f"{src.stem}_{n}{src.suffix}"
        n += 1
    used.add(name)
    return name


def materialize_groups(groups: Sequence[Group], descriptors: Sequence[Descriptor],
                       output_root: Path) -> Dict[str, List[Path]]:
    """Copy the images of every group into its own directory.

    An image contributing several faces to the same group is copied once.
    Photos from different folders sharing a file name get a ``_<n>`` suffix.

    Returns
    -------
    dict
        Mapping from group label to the list of copied destination paths.
    """
    output_root.mkdir(parents=True, exist_ok=True)
    copied: Dict[str, List[Path]] = {}
    for group in groups:
        person_dir = output_root / group.label
        person_dir.mkdir(exist_ok=True)
        dests: List[Path] = []
        seen = set()
        used_names = set()
        for idx in group.members:
            src = Path(descriptors[idx].image_ref)
            if src in seen:
                continue
            seen.add(src)
            dst = person_dir / _unique_name(src, used_names)
            shutil.copy2(src, dst)
            dests.append(dst)
            LOGGER.debug("Image %s copied to %s", src.name, person_dir)
        copied[group.label] = dests
        LOGGER.info("Images for group %d sorted into %s (%d files)", group.index, person_dir, len(dests))
    return copied
