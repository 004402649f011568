import hmac
from typing import Any

from logging_config import get_logger

logger = get_logger(__name__)


class SecretGate:
    """Checks the relay-wide service key presented with privileged events."""

    def __init__(self, secret: str):
        self._secret = secret or ""
        if not self._secret:
            logger.warning("No service key configured; every privileged event will be rejected")

    def is_authorized(self, candidate: Any) -> bool:
        if not isinstance(candidate, str) or not candidate:
            logger.warning("Service key missing from request")
            return False
        if not self._secret:
            logger.warning("Service key presented but none is configured")
            return False
        if hmac.compare_digest(candidate.encode("utf-8"), self._secret.encode("utf-8")):
            logger.debug("Service key accepted")
            return True
        logger.warning(f"Service key mismatch (received {len(candidate)} characters)")
        return False
