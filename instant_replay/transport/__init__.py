from .client import TransportClient
from .heartbeat import HeartbeatMonitor

__all__ = ["HeartbeatMonitor", "TransportClient"]
