"""
Runtime configuration for the shopping mate backend.

Values come from environment variables (optionally loaded from a .env file)
with defaults suitable for local development.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

# Load API keys from .env file
load_dotenv()

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)


@dataclass
class Settings:
    """Retailer, optimizer and API server settings."""

    coles_api_key: str = ""
    coles_store_id: str = "0584"
    woolworths_page_size: int = 36
    aldi_page_size: int = 30

    retailer_http_timeout: float = 10.0  # seconds, per HTTP request
    max_concurrent_pages: int = 4  # page requests in flight per retailer search
    search_timeout: float = 20.0  # seconds, per adapter inside one search
    retailer_user_agent: str = DEFAULT_USER_AGENT
    placeholder_image_url: str = "https://via.placeholder.com/200?text={name}"

    marginal_savings_threshold: float = 1.50

    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        cors_origins_str = os.getenv("API_CORS_ORIGINS", "")
        cors_origins = [o.strip() for o in cors_origins_str.split(",") if o.strip()]

        return cls(
            coles_api_key=os.getenv("COLES_API_KEY", ""),
            coles_store_id=os.getenv("COLES_STORE_ID", "0584"),
            woolworths_page_size=int(os.getenv("WOOLWORTHS_PAGE_SIZE", "36")),
            aldi_page_size=int(os.getenv("ALDI_PAGE_SIZE", "30")),
            retailer_http_timeout=float(os.getenv("RETAILER_HTTP_TIMEOUT", "10")),
            max_concurrent_pages=int(os.getenv("RETAILER_MAX_CONCURRENT_PAGES", "4")),
            search_timeout=float(os.getenv("SEARCH_TIMEOUT", "20")),
            retailer_user_agent=os.getenv("RETAILER_USER_AGENT", DEFAULT_USER_AGENT),
            placeholder_image_url=os.getenv(
                "PLACEHOLDER_IMAGE_URL",
                "https://via.placeholder.com/200?text={name}",
            ),
            marginal_savings_threshold=float(
                os.getenv("MARGINAL_SAVINGS_THRESHOLD", "1.50")
            ),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "3001")),
            cors_origins=cors_origins,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# Global settings instance
settings = Settings.from_env()
