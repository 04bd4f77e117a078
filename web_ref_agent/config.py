from __future__ import annotations

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # browser
    headless: bool = True
    user_data_dir: str | None = None
    start_url: str | None = None
    navigation_timeout_ms: int = 30000
    settle_ms: int = 800

    # snapshot
    max_elements: int = 150
    viewport_margin_px: int = 500
    name_max_length: int = 80
    value_preview_length: int = 30
    marker_attribute: str = "data-agent-ref"
    min_element_size_px: float = 5.0
    min_field_size_px: float = 1.0
    min_opacity: float = 0.1

    # actions
    not_found_sample_size: int = 10
    scroll_fraction: float = 0.7
    scroll_edge_tolerance_px: int = 10

    # overlays
    mark_class: str = "__agent-som-mark"
    mark_min_size_px: float = 2.0
    highlight_class: str = "__agent-highlight"
    highlight_max_matches: int = 3
    highlight_fade_ms: int = 5000
    highlight_remove_ms: int = 5000

    page_content_limit: int = 100000
    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()


settings = get_settings()
