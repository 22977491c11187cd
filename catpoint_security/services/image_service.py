"""Animal detectors: OpenCV Haar cascade and a random stand-in."""

import os
import random
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..config.defaults import MODEL_SETTINGS
from ..logging_config import get_logger
from .interfaces import AnimalDetectorInterface
from .error_handler import ConfigurationError, InvalidArgumentError

logger = get_logger("image_service")


class OpenCVAnimalDetector(AnimalDetectorInterface):
    """Cat detector using OpenCV Haar cascades.

    Each raw cascade hit is scored from its size and its distance to the
    frame centre; the image counts as containing a cat when any score
    reaches the caller's confidence threshold.
    """

    def __init__(self,
                 cascade_path: Optional[str] = None,
                 scale_factor: float = 1.1,
                 min_neighbors: int = 3,
                 min_detection_size: Tuple[int, int] = (30, 30),
                 max_detection_size: Tuple[int, int] = (300, 300)):
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_detection_size = tuple(min_detection_size)
        self.max_detection_size = tuple(max_detection_size)
        self.blur_kernel_size = MODEL_SETTINGS["blur_kernel_size"]
        self.haar_cascade = self._load_cascade(cascade_path)

    def _load_cascade(self, cascade_path: Optional[str]) -> "cv2.CascadeClassifier":
        """Load the configured cascade, falling back to OpenCV's bundled ones."""
        candidates = []
        if cascade_path:
            candidates.append(cascade_path)
        # Wheels without bundled cascades have no cv2.data
        builtin_dir = getattr(getattr(cv2, "data", None), "haarcascades", None)
        if builtin_dir:
            candidates.extend(os.path.join(builtin_dir, name)
                              for name in MODEL_SETTINGS["builtin_cascades"])

        for path in candidates:
            if not os.path.exists(path):
                continue
            cascade = cv2.CascadeClassifier(path)
            if not cascade.empty():
                logger.info(f"Loaded Haar cascade from {path}")
                return cascade
            logger.warning(f"Cascade at {path} could not be loaded")

        raise ConfigurationError(
            f"No usable Haar cascade found (tried: {', '.join(candidates) or 'nothing'})")

    @staticmethod
    def load_image(image_path: str) -> np.ndarray:
        """Read an image file into a BGR array."""
        image = cv2.imread(image_path)
        if image is None:
            raise InvalidArgumentError(f"Could not read image: {image_path}")
        return image

    def detect(self, image: np.ndarray, confidence_threshold: float) -> bool:
        if not isinstance(image, np.ndarray) or image.size == 0:
            raise InvalidArgumentError("Image must be a non-empty numpy array")

        scores = self.score_detections(image)
        detected = any(score >= confidence_threshold for score in scores)
        logger.debug(f"{len(scores)} candidate(s), best score "
                     f"{max(scores, default=0.0):.2f}, threshold {confidence_threshold:.2f}")
        return detected

    def score_detections(self, image: np.ndarray) -> List[float]:
        """Return a confidence score for every cascade hit in the image."""
        processed = self._preprocess_frame(image)
        boxes = self.haar_cascade.detectMultiScale(
            processed,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=self.min_detection_size,
            maxSize=self.max_detection_size,
            flags=cv2.CASCADE_SCALE_IMAGE
        )
        frame_h, frame_w = image.shape[:2]
        return [self._score(int(x), int(y), int(w), int(h), frame_w, frame_h)
                for x, y, w, h in boxes]

    def _preprocess_frame(self, frame: np.ndarray) -> np.ndarray:
        """Grayscale, denoise and equalize the frame for the cascade."""
        if frame.ndim == 3:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        else:
            gray = frame
        if gray.dtype != np.uint8:
            gray = cv2.convertScaleAbs(gray)

        blurred = cv2.GaussianBlur(gray, (self.blur_kernel_size, self.blur_kernel_size), 0)
        return cv2.equalizeHist(blurred)

    def _score(self, x: int, y: int, w: int, h: int, frame_w: int, frame_h: int) -> float:
        # Larger detections near the centre of the frame score higher
        center_x = x + w // 2
        center_y = y + h // 2
        center_dist = ((center_x - frame_w // 2) ** 2 + (center_y - frame_h // 2) ** 2) ** 0.5
        max_dist = (frame_w ** 2 + frame_h ** 2) ** 0.5
        center_factor = 1.0 - (center_dist / max_dist)

        max_area = self.max_detection_size[0] * self.max_detection_size[1]
        size_factor = min(1.0, (w * h) / max_area)

        confidence = 0.6 + 0.2 * center_factor + 0.2 * size_factor
        return max(0.0, min(1.0, confidence))


class RandomAnimalDetector(AnimalDetectorInterface):
    """Detector that answers at random, for demos without a camera."""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def detect(self, image, confidence_threshold: float) -> bool:
        if image is None:
            raise InvalidArgumentError("Image must not be None")
        return self._random.random() > confidence_threshold
