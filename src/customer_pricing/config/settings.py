"""
Centralized settings and path configuration for customer pricing.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def read_api_token() -> Optional[str]:
    """Credential source: the bearer token from the environment, read on every call."""
    return os.environ.get('PRICING_API_TOKEN') or None


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Pricing authority connection
    authority_url: str = 'http://localhost:8000'
    authority_timeout: float = 10.0
    api_token: Optional[str] = None

    # Where the authority API listens
    api_host: str = '127.0.0.1'
    api_port: int = 8000

    # Authority data tables
    data_dir: Optional[Path] = None

    log_level: str = 'INFO'

    @property
    def products_csv(self) -> Path:
        return self.data_dir / 'products.csv'

    @property
    def customers_csv(self) -> Path:
        return self.data_dir / 'customers.csv'

    @property
    def custom_prices_csv(self) -> Path:
        return self.data_dir / 'custom_prices.csv'

    @property
    def price_history_csv(self) -> Path:
        return self.data_dir / 'price_history.csv'

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from environment variables and the project structure."""
        root = project_root or get_project_root()
        data_dir = os.environ.get('PRICING_DATA_DIR')

        return cls(
            authority_url=os.environ.get('PRICING_AUTHORITY_URL', 'http://localhost:8000').rstrip('/'),
            authority_timeout=float(os.environ.get('PRICING_TIMEOUT_SECONDS', '10.0')),
            api_token=read_api_token(),
            api_host=os.environ.get('PRICING_API_HOST', '127.0.0.1'),
            api_port=int(os.environ.get('PRICING_API_PORT', '8000')),
            data_dir=Path(data_dir) if data_dir else root / 'data',
            log_level=os.environ.get('PRICING_LOG_LEVEL', 'INFO').upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
