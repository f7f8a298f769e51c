"""Error types raised by the marketplace core."""

from typing import Any


class MarketError(Exception):
    """Base error carrying a stable code and a user-facing message."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.user_message = user_message or self.default_user_message


class ConfigurationError(MarketError):
    def __init__(self, message: str):
        super().__init__("configuration_error", message, user_message=message)


class ProviderUnavailable(MarketError):
    default_user_message = "No wallet provider detected. Browsing is read-only."

    def __init__(self, message: str = "Signer provider is not available"):
        super().__init__("provider_unavailable", message)


class NotConnected(MarketError):
    default_user_message = "Please connect your wallet first."

    def __init__(self, message: str = "No identity is connected"):
        super().__init__("not_connected", message)


class Unauthorized(MarketError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__("unauthorized", message, details, user_message=message)


class UserDeclined(MarketError):
    default_user_message = "The request was declined in your wallet."

    def __init__(self, message: str = "User declined the signing request"):
        super().__init__("user_declined", message)


class InsufficientFunds(MarketError):
    default_user_message = (
        "Your balance is too low to cover the price and transaction fee."
    )

    def __init__(self, message: str = "Insufficient funds for value and fee"):
        super().__init__("insufficient_funds", message)


class StaleState(MarketError):
    default_user_message = (
        "This item changed since you last viewed it. Please refresh and try again."
    )

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__("stale_state", message, details)


class ResolutionFailure(MarketError):
    def __init__(self, locator: str | None, message: str):
        super().__init__("resolution_failure", message, {"locator": locator})


class ItemNotFound(MarketError):
    default_user_message = "This item does not exist."

    def __init__(self, item_id: int):
        super().__init__("not_found", f"Item {item_id} has no owner", {"id": item_id})
        self.item_id = item_id


class StorageUnavailable(MarketError):
    default_user_message = "Content storage is unavailable. Please try again later."

    def __init__(self, message: str):
        super().__init__("storage_unavailable", message)


class InvalidArguments(MarketError):
    def __init__(self, message: str):
        super().__init__("invalid_arguments", message, user_message=message)


class TransactionFailed(MarketError):
    default_user_message = "The transaction failed."

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            "transaction_failed",
            message,
            details,
            user_message=f"The transaction failed: {message}",
        )


class LedgerRpcError(Exception):
    """JSON-RPC error object returned by the ledger gateway or the wallet."""

    def __init__(self, code: int, message: str, data: object | None = None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data
