from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class SearchConfig:
    default_radius_km: float = float(os.getenv("FOODMAP_DEFAULT_RADIUS_KM", "5"))
    min_radius_km: float = 0.1
    max_radius_km: float = float(os.getenv("FOODMAP_MAX_RADIUS_KM", "50"))
    default_limit: int = 10
    max_limit: int = 100

    # Pickup urgency thresholds, in hours before pickup_end
    urgent_hours: float = float(os.getenv("FOODMAP_URGENT_HOURS", "2"))
    warning_hours: float = float(os.getenv("FOODMAP_WARNING_HOURS", "6"))

    earth_radius_km: float = 6371.0
    polar_cap_latitude: float = 89.9

    request_timeout_s: float = float(os.getenv("FOODMAP_REQUEST_TIMEOUT_S", "10"))
    data_dir: Path = Path(
        os.getenv(
            "FOODMAP_DATA_DIR",
            str(Path(__file__).resolve().parent.parent / "data"),
        )
    )
    log_level: str = os.getenv("FOODMAP_LOG_LEVEL", "INFO")


DEFAULT_SEARCH_CONFIG = SearchConfig()
