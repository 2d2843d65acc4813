class InvalidRequest(Exception):
    """Request body failed validation before reaching Stripe."""

    type = "invalid_request_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class WebhookVerificationError(Exception):
    """The webhook payload could not be authenticated or parsed.

    Raised for a bad or missing signature, an expired timestamp, an unset
    signing secret and a body that is not valid JSON. Never retried by us.
    """
