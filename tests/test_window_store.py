import pytest
from pydantic import ValidationError

from tickbot.schemas.market import sample_from_quote
from tickbot.services.window_store import WindowStore


def test_trims_oldest_first_at_capacity():
    store = WindowStore(capacity=3)
    for i in range(5):
        store.append(sample_from_quote(float(i), i), volume=float(i * 10))

    assert store.size() == 3
    assert [s.close for s in store.samples] == [2.0, 3.0, 4.0]
    assert store.volumes == [20.0, 30.0, 40.0]


def test_samples_and_volumes_stay_aligned():
    store = WindowStore(capacity=4)
    for i in range(10):
        store.append(sample_from_quote(float(i), i), volume=float(i))
        assert len(store.samples) == len(store.volumes) == store.size()
        assert [s.close for s in store.samples] == store.volumes


def test_snapshot_is_a_copy():
    store = WindowStore(capacity=2)
    store.append(sample_from_quote(1.0, 1))
    snapshot = store.samples
    snapshot.clear()
    assert store.size() == 1


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        WindowStore(capacity=0)


def test_price_sample_is_immutable():
    sample = sample_from_quote(1.0, 1)
    with pytest.raises(ValidationError):
        sample.close = 2.0  # type: ignore[misc]
