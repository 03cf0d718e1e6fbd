"""
Custom exceptions for the projection analysis system.

The recommendation engine itself never raises; these exceptions belong to the
collaborators around it (projection fetch, stats providers, storage, CLI).

Usage:
    from propline.exceptions import DataFetchError, InvalidLineError

    try:
        payload = fetch_projections(league_id="7")
    except PrizePicksAPIError as e:
        print(f"PrizePicks rejected the request: {e}")
    except DataFetchError as e:
        print(f"Data fetch failed: {e}")
"""

from typing import Optional


class PropLineError(Exception):
    """
    Base exception for all propline errors.

    All custom exceptions inherit from this, allowing:
        except PropLineError:
            # Catch any system error
    """
    pass


# =============================================================================
# DATA ERRORS
# =============================================================================

class DataFetchError(PropLineError):
    """
    Error fetching data from an API or data source.

    Raised when:
    - API request fails (network error, timeout)
    - Data source is unavailable
    - Response body cannot be decoded
    """

    def __init__(self, source: str, message: Optional[str] = None, original_error: Optional[Exception] = None):
        self.source = source
        self.original_error = original_error
        msg = f"Error fetching from {source}"
        if message:
            msg += f": {message}"
        if original_error:
            msg += f" (caused by: {type(original_error).__name__}: {original_error})"
        super().__init__(msg)


class PrizePicksAPIError(DataFetchError):
    """PrizePicks answered with a non-success status code."""

    def __init__(self, status_code: int, reason: str = "", response_body: Optional[str] = None):
        self.status_code = status_code
        self.response_body = response_body
        message = f"PrizePicks API error: {status_code}"
        if reason:
            message += f" {reason}"
        super().__init__("prizepicks", message)


class RateLimitError(DataFetchError):
    """
    Rate limit exceeded on an upstream API.

    Raised when the API answers 429 or reports an exhausted quota.
    """

    def __init__(self, api_name: str, retry_after: Optional[int] = None):
        self.api_name = api_name
        self.retry_after = retry_after
        msg = "rate limit exceeded"
        if retry_after:
            msg += f" (retry after {retry_after} seconds)"
        super().__init__(api_name, msg)


class StatsParseError(PropLineError):
    """Stats payload did not have the expected shape."""
    pass


# =============================================================================
# ANALYSIS ERRORS
# =============================================================================

class InvalidLineError(PropLineError):
    """
    A projection line could not be parsed into a finite number.

    Raised before the engine is called; the engine only accepts numeric lines.
    """

    def __init__(self, value, projection_id: Optional[int] = None):
        self.value = value
        self.projection_id = projection_id
        msg = f"Invalid line score {value!r}"
        if projection_id is not None:
            msg += f" for projection {projection_id}"
        super().__init__(msg)


class ProjectionNotFoundError(PropLineError):
    """No stored projection has the requested id."""

    def __init__(self, projection_id: int):
        self.projection_id = projection_id
        super().__init__(f"Projection not found: {projection_id}")


class AnalysisNotFoundError(PropLineError):
    """No stored analysis has the requested id."""

    def __init__(self, analysis_id: int):
        self.analysis_id = analysis_id
        super().__init__(f"Analysis not found: {analysis_id}")


# =============================================================================
# STORAGE / CONFIGURATION ERRORS
# =============================================================================

class StorageError(PropLineError):
    """A read or write against the projection store failed."""

    def __init__(self, operation: str, original_error: Optional[Exception] = None):
        self.operation = operation
        self.original_error = original_error
        msg = f"Storage operation failed: {operation}"
        if original_error:
            msg += f" ({type(original_error).__name__}: {original_error})"
        super().__init__(msg)


class ConfigurationError(PropLineError):
    """
    Configuration or setup error.

    Raised when:
    - Required API key missing
    - Invalid configuration value (e.g. unknown sport)
    """

    def __init__(self, setting: str, message: str):
        self.setting = setting
        super().__init__(f"Configuration error ({setting}): {message}")
