"""Tests for batch partitioning and the concurrent fetch pool."""

import threading
import time

import pytest
from conftest import FakeClientFactory, element, ok_response

from transit_heatmap.core.data_types import StepAngle
from transit_heatmap.core.exceptions import BatchSizeMismatchError, ConfigurationError, RemoteServiceError
from transit_heatmap.processing.batch_scheduler import BatchScheduler, partition_batches
from transit_heatmap.requests.travel_options import TravelOptions


def _scheduler(factory, destination, **kwargs):
    kwargs.setdefault('show_progress', False)
    return BatchScheduler(factory, destination, TravelOptions(), **kwargs)


class TestPartition:
    """Tests for partition_batches."""

    def test_sixty_points_make_three_batches(self, lattice):
        batches = partition_batches(lattice, 25)
        assert [len(b) for b in batches] == [25, 25, 10]
        assert [p for batch in batches for p in batch] == lattice

    def test_exact_multiple(self, lattice):
        assert [len(b) for b in partition_batches(lattice, 20)] == [20, 20, 20]

    def test_empty(self):
        assert partition_batches([], 25) == []

    def test_invalid_size(self, lattice):
        with pytest.raises(ConfigurationError):
            partition_batches(lattice, 0)


class TestBatchScheduler:
    """Tests for BatchScheduler."""

    def test_dispatches_three_batches(self, client_factory, destination, lattice):
        results = _scheduler(client_factory, destination).fetch(lattice)

        sizes = sorted(len(call['origins'].split('|')) for call in client_factory.calls)
        assert sizes == [10, 25, 25]
        assert len(results) == 60
        assert all(call['destinations'] == '55.750000,37.450000' for call in client_factory.calls)

    def test_results_follow_lattice_order(self, destination, lattice):
        def slow_first_batch(origins, params):
            # the first batch finishes last
            if origins[0] == '55.700000,37.400000':
                time.sleep(0.2)
            return ok_response(len(origins))

        factory = FakeClientFactory(slow_first_batch)
        results = _scheduler(factory, destination, max_batch_size=10, worker_count=6).fetch(lattice)

        assert [r.coordinate for r in results] == lattice

    def test_one_client_per_worker(self, client_factory, destination, lattice):
        _scheduler(client_factory, destination, worker_count=2).fetch(lattice)

        assert len(client_factory.clients) == 2
        assert all(client.closed for client in client_factory.clients)

    def test_workers_capped_by_batch_count(self, client_factory, destination, lattice):
        _scheduler(client_factory, destination, worker_count=20).fetch(lattice)
        assert len(client_factory.clients) == 3

    def test_partial_failure_keeps_other_rows(self, destination, lattice):
        def zero_results_at_row_four(origins, params):
            response = ok_response(len(origins))
            response['rows'][4] = {'elements': [element(status='ZERO_RESULTS')]}
            return response

        factory = FakeClientFactory(zero_results_at_row_four)
        results = _scheduler(factory, destination, max_batch_size=10).fetch(lattice[:10])

        assert len(results) == 9

    def test_null_row_is_skipped_not_raised(self, destination, lattice):
        def null_first_row(origins, params):
            response = ok_response(len(origins))
            response['rows'][0] = None
            return response

        results = _scheduler(FakeClientFactory(null_first_row), destination, max_batch_size=10).fetch(lattice[:20])

        assert len(results) == 18
        assert lattice[0] not in [r.coordinate for r in results]

    def test_shape_mismatch_aborts_run(self, destination, lattice):
        factory = FakeClientFactory(lambda origins, params: ok_response(len(origins) - 1))

        with pytest.raises(BatchSizeMismatchError):
            _scheduler(factory, destination, max_batch_size=10, worker_count=1).fetch(lattice[:30])

        assert len(factory.calls) == 1

    def test_remote_error_aborts_run(self, destination, lattice):
        def rejected(origins, params):
            raise RemoteServiceError('OVER_QUERY_LIMIT')

        with pytest.raises(RemoteServiceError):
            _scheduler(FakeClientFactory(rejected), destination).fetch(lattice)

    def test_abort_closes_busy_client_after_its_call_returns(self, destination, lattice):
        started, release = threading.Event(), threading.Event()

        def one_slow_one_failing(origins, params):
            if origins[0] == '55.700000,37.400000':
                started.set()
                release.wait(timeout=5)
                return ok_response(len(origins))
            started.wait(timeout=5)
            raise RemoteServiceError('OVER_QUERY_LIMIT')

        factory = FakeClientFactory(one_slow_one_failing)
        with pytest.raises(RemoteServiceError):
            _scheduler(factory, destination, max_batch_size=10, worker_count=2).fetch(lattice[:20])

        assert sorted(client.closed for client in factory.clients) == [False, True]

        release.set()
        deadline = time.monotonic() + 5
        while not all(client.closed for client in factory.clients) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert all(client.closed for client in factory.clients)

    def test_client_creation_error_aborts_run(self, destination, lattice):
        def broken_factory():
            raise ConfigurationError('no key')

        with pytest.raises(ConfigurationError, match='no key'):
            _scheduler(broken_factory, destination).fetch(lattice)

    def test_empty_lattice_creates_no_clients(self, client_factory, destination):
        assert _scheduler(client_factory, destination).fetch([]) == []
        assert client_factory.clients == []

    def test_results_carry_cell_bounds(self, client_factory, destination, lattice):
        step = StepAngle(lat=0.001, lng=0.002)
        results = _scheduler(client_factory, destination, step=step).fetch(lattice[:5])

        assert all(r.bounds is not None for r in results)
        assert results[0].bounds.a.lat == pytest.approx(lattice[0].lat + 0.0005)

    @pytest.mark.parametrize('kwargs', [{'worker_count': 0}, {'max_batch_size': 0}, {'max_batch_size': 26}])
    def test_invalid_pool_configuration(self, client_factory, destination, kwargs):
        with pytest.raises(ConfigurationError):
            _scheduler(client_factory, destination, **kwargs)
