"""
Journal realtime server.

Presence tracking and event fan-out for the journaling app: live WebSocket
connections, journal / personal / game-room topics, and broadcast delivery.
"""

__version__ = "0.1.0"
