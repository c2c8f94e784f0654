from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"

    # Amadeus self-service API
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"
    amadeus_timeout_seconds: float = 15.0

    # Persistent cache
    cache_dir: Path = Path("./data/cache")
    cache_ttl_hours: float = 6.0
    training_mode: bool = False

    # Resolution
    max_discrepancy_percent: float = 30.0
    prefer_lowest_provider_price: bool = False
    filter_major_carriers_only: bool = True

    # Browser pipeline
    headless: bool = True
    search_currency: str = "USD"
    apply_alliance_filter: bool = True
    require_alliance_filter: bool = False
    capture_verification_screenshot: bool = False
    screenshots_dir: Path = Path("./data/screenshots")
    html_snapshots_dir: Path = Path("./data/html_snapshots")

    # Geocoding
    coordinates_csv: Optional[Path] = None

    # Scheduled refresh
    redis_url: str = "redis://localhost:6379/0"
    tracked_routes: List[str] = []
    refresh_lead_weeks: List[int] = [4, 8]
    refresh_stay_days: int = 7

    def model_post_init(self, __context):
        if self.max_discrepancy_percent <= 0:
            raise ValueError("MAX_DISCREPANCY_PERCENT must be positive")
        if self.cache_ttl_hours <= 0:
            raise ValueError("CACHE_TTL_HOURS must be positive")

    @property
    def has_amadeus_credentials(self) -> bool:
        return bool(self.amadeus_client_id and self.amadeus_client_secret)

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
