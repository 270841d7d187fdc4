"""
Command-line entry point for the face grouping pipeline.

This module parses command line arguments, configures logging and
dispatches either to the pipeline runner or to the resize utility.
"""

from __future__ import annotations

import logging
import sys

from .config import parse_args
from .errors import FaceGroupError
from .images import resize_images
from .pipeline import run_pipeline

LOGGER = logging.getLogger(__name__)


def _gpu_preflight() -> None:
    """Warn when ONNX Runtime cannot see a CUDA device.

    This does not stop execution; InsightFace falls back to CPU.
    """
    try:
        import onnxruntime as ort
    except ImportError:
        # InsightFace will report the missing runtime when the model loads
        return
    providers = set(ort.get_available_providers())
    if "CUDAExecutionProvider" not in providers:
        LOGGER.warning(
            "GPU not detected by ONNX Runtime; falling back to CPU. "
            "To enable GPU install the onnxruntime-gpu package and check that "
            "the NVIDIA drivers and CUDA toolkit are installed."
        )


def main(argv: list[str] | None = None) -> int:
    """Entry point called by the ``facegroup`` script."""
    cfg = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if cfg.extra.get("verbose") else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if cfg.extra.get("resize_only"):
        written = resize_images(cfg.input_dir, size=cfg.extra["resize_size"])
        LOGGER.info("Resized %d images", len(written))
        return 0
    if cfg.use_gpu:
        _gpu_preflight()
    try:
        run_pipeline(cfg)
    except (FaceGroupError, FileNotFoundError) as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
