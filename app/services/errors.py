class WalletError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PolicyViolation(WalletError):
    pass


class InsufficientFunds(WalletError):
    pass


class WalletValidationError(WalletError):
    status_code = 422


class StorageFailure(WalletError):
    """The unit of work could not commit. Nothing was persisted; safe to retry."""

    status_code = 503
