from .notifications import stream_notifications
from .errors import error_response, classify_error, build_error_payload

__all__ = ["build_error_payload", "classify_error", "error_response", "stream_notifications"]
