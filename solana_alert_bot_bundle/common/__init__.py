# solana_alert_bot_bundle/common/__init__.py
from .constants import *  # noqa: F401,F403
from .constants import __all__  # noqa: F401
