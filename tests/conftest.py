from pathlib import Path

import numpy as np
import pytest
from PIL import Image

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


class ColorEmbedder:
    """Stands in for InsightFace: one face per image, embedding = pixel colour.

    ``overrides`` maps an RGB colour to a list of embeddings (several faces)
    or to an exception instance raised for that colour.
    """

    def __init__(self, overrides=None):
        self.overrides = overrides or {}
        self.calls = 0

    def extract_faces(self, img):
        self.calls += 1
        b, g, r = (int(v) for v in img[0, 0])
        color = (r, g, b)
        override = self.overrides.get(color)
        if isinstance(override, Exception):
            raise override
        if override is not None:
            embeddings = override
        else:
            embeddings = [np.array(color, dtype=np.float32) / 255.0]
        return [
            {"bbox": [0.0, 0.0, 10.0, 10.0], "embedding": np.asarray(e, dtype=np.float32),
             "det_score": 0.9}
            for e in embeddings
        ]


def write_image(path: Path, color, size=(32, 32)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path)
    return path


@pytest.fixture
def photo_dir(tmp_path: Path) -> Path:
    root = tmp_path / "photos"
    write_image(root / "alice_1.png", RED)
    write_image(root / "alice_2.png", RED)
    write_image(root / "bob_1.png", GREEN)
    write_image(root / "bob_2.png", GREEN)
    write_image(root / "bob_3.png", GREEN)
    write_image(root / "carol.png", BLUE)
    (root / "broken.jpg").write_bytes(b"not an image")
    return root
