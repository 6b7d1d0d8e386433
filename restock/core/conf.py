"""
Workflow configuration collected from Django settings in one place.
"""
from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class RestockSettings:
    purchase_order_prefix: str = 'PO'
    order_sequence_width: int = 4
    reorder_multiplier: int = 2
    alert_summary_cache_ttl: int = 120
    default_from_email: str = 'purchasing@localhost'
    whatsapp_api_url: str = ''
    whatsapp_api_token: str = ''
    dispatch_timeout: float = 10.0

    @classmethod
    def from_django_settings(cls):
        return cls(
            purchase_order_prefix=getattr(settings, 'PURCHASE_ORDER_PREFIX', 'PO'),
            reorder_multiplier=getattr(settings, 'REORDER_MULTIPLIER', 2),
            alert_summary_cache_ttl=getattr(settings, 'ALERT_SUMMARY_CACHE_TTL', 120),
            default_from_email=getattr(settings, 'DEFAULT_FROM_EMAIL', 'purchasing@localhost'),
            whatsapp_api_url=getattr(settings, 'WHATSAPP_API_URL', ''),
            whatsapp_api_token=getattr(settings, 'WHATSAPP_API_TOKEN', ''),
            dispatch_timeout=getattr(settings, 'DISPATCH_TIMEOUT', 10.0),
        )


def get_restock_settings():
    """Read the current workflow settings (honours override_settings in tests)"""
    return RestockSettings.from_django_settings()
