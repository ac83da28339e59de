"""Portfel exceptions."""


class PortfelError(Exception):
    """Base exception for Portfel errors."""

    pass


class ValidationError(PortfelError):
    """Raised when a position, settings value or merge fails validation."""

    def __init__(self, messages: str | list[str]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class StorageError(PortfelError):
    """Raised when the storage backend cannot read or write a key."""

    def __init__(self, key: str, reason: str = ""):
        self.key = key
        self.reason = reason
        message = f"Storage failure for {key}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NotFoundError(PortfelError):
    """Raised when a position is not found."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Position not found: {symbol}")


class NotificationPermissionError(PortfelError):
    """Raised when notification permission has not been granted."""

    pass


class NotificationUnavailableError(PortfelError):
    """Raised when the notification service cannot be reached."""

    pass
