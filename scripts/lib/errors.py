"""
Custom error classes for the Sales Funnel Dashboard.
Structured error handling with error codes across the data pipeline.

Hierarchy:
    DashboardError
    ├── APIError
    │   ├── APITimeoutError
    │   ├── APIRateLimitError
    │   └── APIAuthError
    └── DataError
        ├── ConfigError
        └── DataFetchError

An empty qualified-lead result is not an error: the HubSpot adapter returns
None and the orchestrator falls back to the CSV file.
"""


class DashboardError(Exception):
    """Base exception for all dashboard pipeline errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- API Errors ---

class APIError(DashboardError):
    """Base class for CRM API errors."""

    def __init__(self, message: str, code: str = "API_ERROR",
                 status_code: int = None, url: str = None, **kwargs):
        self.status_code = status_code
        self.url = url
        details = {"status_code": status_code, "url": url, **kwargs}
        super().__init__(message, code=code, details=details)


class APITimeoutError(APIError):
    """Request timed out."""

    def __init__(self, url: str, timeout: int):
        super().__init__(
            f"Request timed out after {timeout}s: {url}",
            code="API_TIMEOUT", url=url, timeout=timeout,
        )


class APIRateLimitError(APIError):
    """Rate limit exceeded. Not retried."""

    def __init__(self, url: str, retry_after: int = None):
        msg = f"Rate limit exceeded: {url}"
        if retry_after:
            msg += f" (retry after {retry_after}s)"
        super().__init__(
            msg, code="API_RATE_LIMIT", status_code=429, url=url,
            retry_after=retry_after,
        )


class APIAuthError(APIError):
    """Authentication or authorization failure."""

    def __init__(self, url: str, status_code: int = 401):
        super().__init__(
            f"Authentication failed: {url}",
            code="API_AUTH_FAILED", url=url, status_code=status_code,
        )


# --- Data Errors ---

class DataError(DashboardError):
    """Base class for data loading errors."""
    pass


class ConfigError(DataError):
    """Missing or invalid configuration (e.g. no HubSpot credential)."""

    def __init__(self, message: str, config_path: str = None, setting: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"config_path": config_path, "setting": setting},
        )


class DataFetchError(DataError):
    """Failed to fetch or load source records. No partial snapshot is produced."""

    def __init__(self, message: str, source: str = None):
        super().__init__(
            message, code="DATA_FETCH_FAILED", details={"source": source},
        )
