"""Errors raised by third-party provider clients."""


class ProviderNotConfiguredError(Exception):
    """Raised when a provider is called without its API credentials."""

    def __init__(self, provider: str, env_vars: list[str]):
        self.provider = provider
        self.env_vars = env_vars
        super().__init__(
            f"{provider} not configured. Check {', '.join(env_vars)}"
        )


class ProviderError(Exception):
    """Raised when a provider API call fails.

    Attributes:
        provider: Provider name for logs and error bodies.
        status_code: Upstream HTTP status, or None for transport errors.
    """

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider} error: {message}")
