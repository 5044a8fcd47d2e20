"""Error taxonomy for queue, ledger and webhook failures."""


class SeoImgError(Exception):
    """Base class for all seoimg errors."""


class ValidationError(SeoImgError):
    """An item lacks required fields or carries an unusable value."""


class NoValidItemsError(ValidationError):
    """No queued item has all required fields filled in."""


class InsufficientCreditsError(SeoImgError):
    """Balance is below the cost of the requested work."""

    def __init__(self, required: int, available: int, message: str | None = None):
        self.required = required
        self.available = available
        super().__init__(
            message or f"You need {required} credits but only have {available} credits remaining."
        )


class CreditDebitError(SeoImgError):
    """The ledger rejected a debit even though the balance check passed."""


class RunActiveError(SeoImgError):
    """A bulk run is already active for this session."""


class GenerationCallError(SeoImgError):
    """The webhook call failed: network error, non-2xx status, or no image in the body."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PersistenceCorruptionError(SeoImgError):
    """A stored snapshot could not be parsed."""
