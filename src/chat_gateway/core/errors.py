"""
Chat gateway error types.
"""


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, provider: str = None):
        self.message = message
        self.provider = provider
        super().__init__(message)


class ConfigurationError(GatewayError):
    """Raised when a provider has no usable configuration (e.g. no credentials)."""
    pass


class UnknownProviderError(GatewayError):
    """Raised when a provider identifier was never registered."""

    def __init__(self, name: str, registered=None):
        message = f"Provider {name} not found"
        if registered is not None:
            message += f". Registered: {sorted(registered)}"
        super().__init__(message, provider=name)


class ProviderUnavailableError(GatewayError):
    """Raised when the upstream stream could not be opened."""

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message, provider)
        self.status_code = status_code


class UpstreamAuthenticationError(ProviderUnavailableError):
    """Raised when the backend rejects the credential."""
    pass


class UpstreamRateLimited(ProviderUnavailableError):
    """Raised when the backend reports a rate-limit or quota failure."""

    def __init__(self, message: str, provider: str = None, retry_after: float = None):
        super().__init__(message, provider, status_code=429)
        self.retry_after = retry_after


class InactivityTimeout(GatewayError):
    """Raised when the upstream produced nothing within the inactivity window."""

    def __init__(self, timeout: float, provider: str = None):
        super().__init__(f"AI response timed out after {timeout:g}s of inactivity", provider)
        self.timeout = timeout
