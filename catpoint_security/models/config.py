"""Configuration data models."""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class SystemConfig:
    """System configuration settings."""
    # Detection settings
    confidence_threshold: float = 0.5
    cascade_path: str = "models/haarcascade_frontalcatface.xml"
    scale_factor: float = 1.1
    min_neighbors: int = 3
    min_detection_size: Tuple[int, int] = (30, 30)
    max_detection_size: Tuple[int, int] = (300, 300)

    # Storage settings
    database_path: str = "data/catpoint.db"

    # Logging settings
    log_level: str = "INFO"
    log_dir: str = ""  # empty disables file logging
