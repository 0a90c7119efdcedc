# merchant/errors.py
class MerchantError(Exception):
    """Base error for the merchant platform integration."""
    def __init__(self, msg: str = "", **ctx):
        super().__init__(msg)
        self.msg = msg
        self.ctx = ctx

    def __str__(self):
        base = self.msg or self.__class__.__name__
        if self.ctx:
            details = ", ".join(f"{k}={v}" for k, v in self.ctx.items())
            return f"{base} [{details}]"
        return base

class AuthError(MerchantError):
    """Credential exchange failed or returned a malformed payload."""

class TransportError(MerchantError):
    """Network failure or non-2xx response from the merchant platform."""
    def __init__(self, msg: str = "", status: int | None = None, **ctx):
        super().__init__(msg, **ctx)
        self.status = status

class NotFoundError(MerchantError):
    """Referenced order does not exist on the merchant platform."""
