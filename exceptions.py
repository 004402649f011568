from typing import List


class RelayError(Exception):
    """Base class for relay errors."""


class TLSConfigurationError(RelayError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"HTTPS requested but missing: {', '.join(self.missing)}")


class UnknownChannelError(RelayError):
    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"Unknown channel: {namespace}")


class UnknownEventError(RelayError):
    def __init__(self, namespace: str, event: str):
        self.namespace = namespace
        self.event = event
        super().__init__(f"Unknown event '{event}' on channel {namespace}")
