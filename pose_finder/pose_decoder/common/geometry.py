# pose_finder/pose_decoder/common/geometry.py
import cv2
import numpy as np
from typing import Sequence, Tuple

Point = Tuple[float, float]
Vector = Tuple[float, float]

def translate(point: Point, vector: Vector) -> Point:
    return (point[0] + vector[0], point[1] + vector[1])

def distance(a: Point, b: Point) -> float:
    return float(np.hypot(b[0] - a[0], b[1] - a[1]))

def scale_transform(source_size: Tuple[float, float], target_size: Tuple[float, float]) -> np.ndarray:
    """Returns the 2x3 affine matrix that scales points from `source_size` onto `target_size`."""
    source_w, source_h = source_size
    target_w, target_h = target_size
    if source_w <= 0 or source_h <= 0:
        raise ValueError(f"Source size must be positive, got {source_size}")
    return np.array([
        [target_w / source_w, 0.0, 0.0],
        [0.0, target_h / source_h, 0.0],
    ], dtype=np.float64)

def apply_transform(points: Sequence[Point], matrix: np.ndarray) -> np.ndarray:
    """Applies an affine matrix to a list of (x, y) points, returning an (N, 2) array."""
    if len(points) == 0:
        return np.empty((0, 2), dtype=np.float64)
    src = np.asarray(points, dtype=np.float64).reshape(-1, 1, 2)
    return cv2.transform(src, matrix).reshape(-1, 2)
