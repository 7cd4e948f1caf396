"""Error taxonomy shared by providers, the router and the tool layer."""

from __future__ import annotations


class EstateBotError(Exception):
    """Base class for all estate-bot errors. ``code`` is stable and machine-readable."""

    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


# -- provider level: caught by the router, trigger fallback ------------------


class ProviderError(EstateBotError):
    code = "provider_error"

    def __init__(self, provider: str, message: str = ""):
        super().__init__(message)
        self.provider = provider


class MissingCredential(ProviderError):
    code = "missing_api_key"


class RateLimitExceeded(ProviderError):
    code = "rate_limit_exceeded"


class ProviderRequestFailed(ProviderError):
    code = "request_failed"


class ProviderAPIError(ProviderError):
    code = "api_error"

    def __init__(self, provider: str, status: int, message: str = ""):
        super().__init__(provider, message or f"API returned status {status}")
        self.status = status


class InvalidResponseFormat(ProviderError):
    code = "invalid_response"


# -- routing level: terminal for the turn -------------------------------------


class RoutingError(EstateBotError):
    code = "routing_error"


class NoProvidersConfigured(RoutingError):
    code = "no_providers"


class AllProvidersFailed(RoutingError):
    code = "all_providers_failed"

    def __init__(self, attempts: list[tuple[str, ProviderError]]):
        summary = "; ".join(f"{name}: {err.code}" for name, err in attempts)
        super().__init__(f"All providers failed ({summary})")
        self.attempts = attempts


class MaxIterationsReached(RoutingError):
    """The tool loop hit its bound without a final answer.

    Tools may already have recorded leads, so no other provider is tried.
    """

    code = "max_iterations"

    def __init__(self, provider: str, iterations: int, tokens_used: int = 0):
        super().__init__(f"No final answer after {iterations} tool iterations")
        self.provider = provider
        self.iterations = iterations
        self.tokens_used = tokens_used


# -- tool level: returned as data, never raised through the loop --------------


class ToolError(EstateBotError):
    code = "tool_error"


class UnknownTool(ToolError):
    code = "unknown_tool"


class ToolExecutionError(ToolError):
    code = "tool_execution_error"


class ReferenceUnresolved(ToolError):
    code = "reference_unresolved"
