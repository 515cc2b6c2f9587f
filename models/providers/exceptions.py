"""Provider-level exceptions."""


class ProviderError(Exception):
    """A provider could not produce a response."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderRateLimitError(ProviderError):
    """The upstream API rejected the request with HTTP 429."""

    def __init__(self, provider: str, retry_after: float | None = None):
        self.retry_after = retry_after
        detail = "rate limited"
        if retry_after is not None:
            detail += f" (retry after {retry_after}s)"
        super().__init__(provider, detail)
