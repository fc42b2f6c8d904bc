"""
Error Taxonomy for the Heatmap Pipeline

Exceptions:
-----------
- `HeatmapError`: Base class; the command line catches it and exits non-zero.
- `ConfigurationError`: Unrecognized option value, invalid coordinate or a missing API key.
- `InvalidExtentError`: The sampled rectangle cannot be normalized (NaN or infinite corner).
- `InvalidThresholdError`: Zone classification called with a non-positive threshold or zone count.
- `BatchSizeMismatchError`: The service answered a batch with a different number of rows than origins.
- `RemoteServiceError`: Transport failure or a non-OK top-level status from the service.
- `SerializationError`: Reading or writing the persisted results or the rendered overlay failed.

Row-level failures (element status other than OK) are not exceptions; they are
logged and skipped inside `transit_heatmap.requests.parse_response`.
"""


class HeatmapError(Exception):
    """Base class for all errors raised by the heatmap pipeline."""
    pass


class ConfigurationError(HeatmapError):
    """Raised when the run is configured with a value the pipeline cannot use."""
    pass


class InvalidExtentError(ConfigurationError):
    """Raised when the sampled rectangle has no well-defined ordering."""
    pass


class InvalidThresholdError(ConfigurationError):
    """Raised when the maximum duration or the zone count is not positive."""
    pass


class BatchSizeMismatchError(HeatmapError):
    """Raised when a response does not contain exactly one row per requested origin."""

    def __init__(self, expected: int, received: int, batch_index: int = -1) -> None:
        self.expected = expected
        self.received = received
        self.batch_index = batch_index
        context = f" in batch {batch_index}" if batch_index >= 0 else ""
        super().__init__(
            f"Response row count does not match origin count{context}: "
            f"{expected} origins != {received} rows"
        )


class RemoteServiceError(HeatmapError):
    """Raised when the Distance Matrix service cannot be reached or rejects the request."""
    pass


class SerializationError(HeatmapError):
    """Raised when persisted results or the rendered overlay cannot be read or written."""
    pass
