from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class ProctorSettings(BaseSettings):
    """Tunables of the proctoring agent, read from PROCTOR_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROCTOR_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    api_base_url: str = "http://localhost:8000/api/v1"
    upload_url: Optional[str] = None
    access_token: Optional[str] = None
    request_timeout_seconds: float = 10.0

    # debouncing
    cooldown_ms: float = 3000.0

    # attention drift geometry; the center box must sit inside the edge bands
    center_x_min: float = 0.28
    center_x_max: float = 0.72
    center_y_min: float = 0.22
    center_y_max: float = 0.78
    edge_x_min: float = 0.25
    edge_x_max: float = 0.75
    edge_y_min: float = 0.20
    edge_y_max: float = 0.80
    min_area_fraction: float = 0.035
    sideways_aspect_ratio: float = 0.7
    severe_drift_dwell_ms: float = 400.0
    off_center_dwell_ms: float = 800.0

    # voice activity
    voice_baseline_decay: float = 0.98
    voice_threshold_ratio: float = 1.2
    voice_threshold_floor: float = 0.006
    voice_decay_ratio: float = 0.6
    voice_sustain_ms: float = 800.0
    voice_max_tick_ms: float = 100.0

    # object detection scores
    cell_phone_min_score: float = 0.5
    prohibited_object_min_score: float = 0.6

    # browser
    window_blur_grace_ms: float = 3000.0

    # loop cadences
    frame_interval_seconds: float = 0.5
    audio_interval_seconds: float = 0.02
    autosave_interval_seconds: float = 15.0

    jpeg_quality: int = 90
