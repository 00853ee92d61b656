"""
Client Runtime
--------------
Browser-side session and configuration logic: the session URL codec, the idle
session state machine and the live configuration poller.
"""

from app.client.live_config import ConfigStore, LiveConfigPoller
from app.client.session_lifecycle import SessionLifecycleManager, SessionState

__all__ = [
    "ConfigStore",
    "LiveConfigPoller",
    "SessionLifecycleManager",
    "SessionState",
]
