"""
Face detection and embedding.

This module abstracts away the details of loading and running the facial
embedding model.  It uses InsightFace's ``FaceAnalysis`` on ONNX Runtime.
The :class:`Embedder` interface exposes a single method
:meth:`extract_faces` which takes a BGR image and returns a list of face
records with bounding boxes, detection scores and embeddings.

:func:`extract_descriptors` drives an embedder over a list of image paths
and turns the results into the ordered :class:`~facegroup.grouping.Descriptor`
list consumed by the grouping core.  Model state lives only here; the core
receives embeddings as plain arrays.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import cv2
import numpy as np

from .grouping import Descriptor

LOGGER = logging.getLogger(__name__)


class Embedder:
    """Base class for all embedders."""

    def extract_faces(self, img: np.ndarray) -> List[Dict[str, Any]]:
        """Detect and embed faces from a BGR image.

        Subclasses must implement this method and return a list of dicts
        containing at least ``embedding``, ``bbox`` and ``det_score``,
        ordered with the most confident face first.
        """
        raise NotImplementedError


class InsightFaceEmbedder(Embedder):
    """Wrapper around InsightFace ``FaceAnalysis`` API.

    Parameters
    ----------
    model_name: str
        Name of the model package to load from InsightFace
        (``"buffalo_l"`` by default).
    min_face_size: int
        Minimum side length (in pixels) of detected faces.  Smaller faces
        are filtered out.
    use_gpu: bool
        Whether to use CUDA if available; falls back to CPU otherwise.
    """
    def __init__(self, model_name: str = "buffalo_l", min_face_size: int = 40, use_gpu: bool = True) -> None:
        from insightface.app import FaceAnalysis

        if use_gpu:
            providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]
        else:
            providers = ["CPUExecutionProvider"]
        LOGGER.info("Loading InsightFace model %s", model_name)
        self.app = FaceAnalysis(name=model_name, providers=providers)
        self.app.prepare(ctx_id=0 if use_gpu else -1, det_size=(640, 640))
        self.min_face_size = min_face_size
        LOGGER.info("Model loaded")

    def extract_faces(self, img: np.ndarray) -> List[Dict[str, Any]]:
        faces = self.app.get(img)
        results: List[Dict[str, Any]] = []
        for f in faces:
            x1, y1, x2, y2 = f.bbox.astype(float)
            if min(x2 - x1, y2 - y1) < self.min_face_size:
                continue
            embedding = f.embedding.astype(np.float32)
            # L2 normalise
            embedding /= np.linalg.norm(embedding) + 1e-9
            results.append({
                "bbox": [float(x1), float(y1), float(x2), float(y2)],
                "embedding": embedding,
                "det_score": float(f.det_score) if hasattr(f, "det_score") else None,
            })
        results.sort(key=lambda r: r["det_score"] or 0.0, reverse=True)
        return results


def get_embedder(model_name: str = "buffalo_l", min_face_size: int = 40, use_gpu: bool = True) -> Embedder:
    """Factory function returning an embedder instance given a model name."""
    return InsightFaceEmbedder(model_name=model_name, min_face_size=min_face_size, use_gpu=use_gpu)


def extract_descriptors(paths: Iterable[Path], embedder: Embedder) -> List[Descriptor]:
    """Run ``embedder`` over ``paths`` and return descriptors in path order.

    Every detected face becomes a descriptor, most confident first within
    an image; use :func:`~facegroup.grouping.limit_faces_per_image` to keep
    only the first.  Images that cannot be read, or on which the model
    fails, contribute no descriptors and are logged.  Invalid embeddings
    are not caught: they raise :class:`~facegroup.errors.InvalidInput` and
    abort the run.
    """
    descriptors: List[Descriptor] = []
    n_images = 0
    for path in paths:
        n_images += 1
        img = cv2.imread(str(path))
        if img is None:
            LOGGER.warning("Could not read %s, skipping", path)
            continue
        try:
            faces = embedder.extract_faces(img)
        except Exception as exc:  # model failures are per-image
            LOGGER.warning("Face extraction failed for %s: %s", path, exc)
            continue
        if not faces:
            LOGGER.info("No faces detected in %s", path.name)
            continue
        for face_index, face in enumerate(faces):
            descriptors.append(Descriptor(image_ref=str(path), embedding=face["embedding"],
                                          face_index=face_index))
        LOGGER.debug("Face descriptors for %s added (%d)", path.name, len(faces))
    LOGGER.info("Extracted %d descriptors from %d images", len(descriptors), n_images)
    return descriptors
