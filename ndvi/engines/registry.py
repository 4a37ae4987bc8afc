from __future__ import annotations

from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

from .base import AgroProvider


@lru_cache(maxsize=1)
def get_provider() -> AgroProvider:
    """Return the configured provider instance."""

    provider_path = getattr(
        settings,
        "AGRO_PROVIDER_PATH",
        "ndvi.engines.agromonitoring.AgroMonitoringProvider",
    )
    provider_cls: type[AgroProvider] = import_string(provider_path)
    return provider_cls()
