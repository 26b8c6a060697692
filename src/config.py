"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"
    app_host: str = "0.0.0.0"
    app_port: int = 8001
    max_tracked_scrapes: int = 100  # Finished executions kept for the status API

    # ==========================================================================
    # Catalog Backend
    # ==========================================================================
    existence_check_url: str = "http://localhost:3001/api/internal/products/batch-exists"
    existence_check_timeout: float = 15.0
    log_api_endpoint: str = "http://localhost:3001/api/admin/scraper-tasks/logs/internal/log"
    log_api_timeout: float = 5.0
    log_api_enabled: bool = True

    # ==========================================================================
    # Crawl Defaults
    # ==========================================================================
    default_max_products: int = 1000
    default_max_concurrency: int = 5
    max_requests_headroom: int = 50  # maxRequests = maxProducts + headroom
    max_request_retries: int = 3
    default_max_load_clicks: int = 50  # Maximum listing page depth

    # Timeouts (seconds)
    request_handler_timeout: float = 300.0
    navigation_timeout: float = 120.0
    network_idle_timeout: float = 10.0
    list_container_timeout: float = 60.0
    selector_timeout: float = 3.0

    # List page reveal
    max_scroll_steps: int = 5
    pagination_scroll_steps: int = 2

    # ==========================================================================
    # Browser Settings
    # ==========================================================================
    headless: bool = True
    chrome_executable_path: str = ""
    block_resources: bool = True

    # Dataset output
    storage_dir: str = "scraper_storage_runs"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
