"""
Distance Matrix Request Builder and Client

This module constructs and sends Distance Matrix requests for one batch of
origins against the single heatmap destination.

Core Functions:
---------------
- format_coordinate(...): Renders a coordinate as "lat,lng" with 6 decimals.
- create_distance_matrix_request(...): Builds the query parameters for one batch.
- DistanceMatrixClient: Owns one HTTP session and performs the blocking call.

Dependencies:
-------------
- requests: Synchronous HTTP GET handling (run inside a thread pool by the scheduler)
- transit_heatmap.core.config: Provides the API key, endpoint, timeout and batch limit

Notes:
------
Each fetch worker creates its own `DistanceMatrixClient`, so a session is never
shared between threads and every worker has at most one request in flight.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import requests

from transit_heatmap.core.config import (
    API_KEY, COORDINATE_PRECISION, ENDPOINT, MAX_ELEMENTS, REQUEST_TIMEOUT
)
from transit_heatmap.core.data_types import Coordinate
from transit_heatmap.core.exceptions import ConfigurationError, RemoteServiceError
from transit_heatmap.requests.travel_options import TravelOptions

logger = logging.getLogger(__name__)

def format_coordinate(coordinate: Coordinate) -> str:
    """
    Formats a coordinate the way the Distance Matrix API expects it.

    Args:
        coordinate (Coordinate): Point in degrees.

    Returns:
        str: "lat,lng" with six decimal digits, e.g. "55.750000,37.450000".
    """
    return f"{coordinate.lat:.{COORDINATE_PRECISION}f},{coordinate.lng:.{COORDINATE_PRECISION}f}"

def create_distance_matrix_request(
    origins: Sequence[Coordinate],
    destination: Coordinate,
    options: TravelOptions,
    max_batch_size: int = MAX_ELEMENTS
) -> Dict[str, str]:
    """
    Builds the query parameters for one batch of origins.

    Args:
        origins (Sequence[Coordinate]): Batch of sample points, in lattice order.
        destination (Coordinate): The fixed heatmap destination.
        options (TravelOptions): Optional parameters; unset ones are omitted.
        max_batch_size (int): Service limit on origins per request.

    Returns:
        Dict[str, str]: Query parameters without the API key.

    Raises:
        ConfigurationError: If the batch is empty or larger than the service limit.
    """
    if not origins or len(origins) > max_batch_size:
        raise ConfigurationError(
            f"A request needs between 1 and {max_batch_size} origins, got {len(origins)}"
        )

    params = {
        "origins": "|".join(format_coordinate(origin) for origin in origins),
        "destinations": format_coordinate(destination),
    }
    params.update(options.to_request_params())
    return params


class DistanceMatrixClient:
    """
    Blocking Distance Matrix client bound to a single `requests.Session`.

    Not thread-safe; create one per worker.
    """

    def __init__(
        self,
        api_key: str = API_KEY,
        endpoint: str = ENDPOINT,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                "No Distance Matrix API key given. Pass --key or set GOOGLE_MAPS_API_KEY."
            )
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def distance_matrix(self, params: Dict[str, str]) -> Dict[str, Any]:
        """
        Sends one Distance Matrix request.

        Args:
            params (Dict[str, str]): Query parameters from `create_distance_matrix_request`.

        Returns:
            Dict[str, Any]: Decoded JSON response with a top-level "OK" status.

        Raises:
            RemoteServiceError: On transport errors, HTTP errors, undecodable bodies
                or a top-level status other than "OK" (e.g. REQUEST_DENIED).
        """
        try:
            response = self.session.get(
                self.endpoint, params={**params, "key": self.api_key}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise RemoteServiceError(f"Distance Matrix request failed: {e}") from e
        except ValueError as e:
            raise RemoteServiceError(f"Distance Matrix response is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise RemoteServiceError(f"Distance Matrix response is not a JSON object: {data!r}")

        status = data.get("status")
        if status != "OK":
            message = data.get("error_message", "")
            raise RemoteServiceError(f"Distance Matrix request rejected with status {status}. {message}".strip())

        logger.debug(f"Received {len(data.get('rows', []))} rows from the Distance Matrix API.")
        return data

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "DistanceMatrixClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
