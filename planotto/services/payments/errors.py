class BillingError(Exception):
    """Base for billing failures surfaced to the HTTP layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BillingNotConfiguredError(BillingError):
    status_code = 503


class WebhookSignatureError(BillingError):
    status_code = 400


class MissingStripeCustomerError(BillingError):
    status_code = 400


class ProfileUpdateError(BillingError):
    """Both the full and the reduced profile update were rejected."""

    status_code = 500
