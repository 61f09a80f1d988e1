"""
Configuration management for the storefront core.

Loads settings from YAML config file and provides typed access.
Supabase credentials come from the environment (.env is honoured).
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of storefront package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


def _default_shipping_costs() -> Dict[str, float]:
    return {"standard": 5.99, "express": 12.99, "overnight": 24.99}


@dataclass
class StorefrontConfig:
    """Configuration for the storefront core."""

    # Backend-as-a-service
    supabase_url: str = ""
    supabase_key: str = ""
    request_timeout: float = 15.0       # Seconds; expiry is treated as any other gateway failure

    # Checkout pricing
    tax_rate: float = 0.08              # Flat rate applied to the subtotal
    shipping_costs: Dict[str, float] = field(default_factory=_default_shipping_costs)
    strict_checkout: bool = True        # Validate shipping fields before payment

    # Catalog
    price_floor: int = 0
    price_ceiling: int = 10000
    page_size: int = 24

    # Notifications
    notification_history: int = 50      # Recent toasts kept in memory

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "StorefrontConfig":
        """Load configuration from YAML file, then overlay environment credentials."""
        path = config_path or DEFAULT_CONFIG_PATH
        data = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        backend_config = data.get('backend', {})
        checkout_config = data.get('checkout', {})
        catalog_config = data.get('catalog', {})
        notifications_config = data.get('notifications', {})

        shipping_costs = _default_shipping_costs()
        shipping_costs.update({
            method: float(cost)
            for method, cost in (checkout_config.get('shipping_costs') or {}).items()
        })

        return cls(
            supabase_url=os.environ.get("SUPABASE_URL") or backend_config.get('url', ''),
            supabase_key=os.environ.get("SUPABASE_KEY") or backend_config.get('key', ''),
            request_timeout=float(backend_config.get('request_timeout', 15.0)),
            tax_rate=float(checkout_config.get('tax_rate', 0.08)),
            shipping_costs=shipping_costs,
            strict_checkout=bool(checkout_config.get('strict', True)),
            price_floor=int(catalog_config.get('price_floor', 0)),
            price_ceiling=int(catalog_config.get('price_ceiling', 10000)),
            page_size=int(catalog_config.get('page_size', 24)),
            notification_history=int(notifications_config.get('history', 50)),
        )


# Global config instance
_config: Optional[StorefrontConfig] = None


def get_config() -> StorefrontConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = StorefrontConfig.from_yaml()
    return _config


def set_config(config: StorefrontConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
