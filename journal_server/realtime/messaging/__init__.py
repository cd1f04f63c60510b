"""
Messaging components for the realtime core.

This package provides per-connection delivery and topic/user broadcasting.
"""

from .broadcaster import MessageBroadcaster
from .connection_sender import ConnectionMessageSender

__all__ = ["MessageBroadcaster", "ConnectionMessageSender"]
