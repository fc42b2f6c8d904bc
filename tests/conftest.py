"""Pytest configuration and fixtures for the heatmap tests."""

import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

# Add backend directory to path for imports
backend_path = Path(__file__).parent.parent / 'backend'
sys.path.insert(0, str(backend_path))

from transit_heatmap.core.data_types import Coordinate  # noqa: E402


def element(status: str = 'OK', seconds: int = 600, in_traffic: Optional[int] = None) -> Dict:
    """Build one Distance Matrix response element."""
    data: Dict = {'status': status}
    if status == 'OK':
        data['duration'] = {'value': seconds, 'text': f'{round(seconds / 60)} mins'}
        if in_traffic is not None:
            data['duration_in_traffic'] = {'value': in_traffic, 'text': f'{round(in_traffic / 60)} mins'}
    return data


def ok_response(count: int, seconds: int = 600) -> Dict:
    """Build a response where every origin is reachable in `seconds`."""
    return {
        'status': 'OK',
        'rows': [{'elements': [element(seconds=seconds)]} for _ in range(count)],
    }


Handler = Callable[[List[str], Dict[str, str]], Dict]


class FakeDistanceMatrixClient:
    """Stands in for DistanceMatrixClient; answers from a handler instead of the network."""

    def __init__(self, handler: Optional[Handler] = None, calls: Optional[List[Dict[str, str]]] = None):
        self.handler = handler or (lambda origins, params: ok_response(len(origins)))
        self.calls = calls if calls is not None else []
        self.closed = False

    def distance_matrix(self, params: Dict[str, str]) -> Dict:
        self.calls.append(params)
        return self.handler(params['origins'].split('|'), params)

    def close(self) -> None:
        self.closed = True


class FakeClientFactory:
    """Creates one FakeDistanceMatrixClient per worker and records every call."""

    def __init__(self, handler: Optional[Handler] = None):
        self.handler = handler
        self.calls: List[Dict[str, str]] = []
        self.clients: List[FakeDistanceMatrixClient] = []
        self._lock = threading.Lock()

    def __call__(self, *args, **kwargs) -> FakeDistanceMatrixClient:
        client = FakeDistanceMatrixClient(self.handler, self.calls)
        with self._lock:
            self.clients.append(client)
        return client


@pytest.fixture
def client_factory():
    """Factory of fake clients that answer OK with 600 s for every origin."""
    return FakeClientFactory()


@pytest.fixture
def destination():
    return Coordinate(lat=55.75, lng=37.45)


@pytest.fixture
def lattice():
    """Sixty distinct sample points in lattice order."""
    return [Coordinate(lat=55.70 + i * 0.001, lng=37.40) for i in range(60)]
