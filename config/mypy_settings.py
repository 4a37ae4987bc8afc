from __future__ import annotations

import os

# ---- Safe defaults so importing config.settings
# won't explode during mypy ----
os.environ.setdefault("DJANGO_SECRET_KEY", "mypy-only-not-for-prod")
os.environ.setdefault("AGRO_API_KEY", "mypy-only-agro-key")

from .settings import *  # noqa: F401,F403,E402

# Optional hard overrides for mypy environment:
DEBUG = False
USE_TZ = True
