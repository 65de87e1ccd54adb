"""Tests for identifier generation."""

import threading

import pytest

from idbroker.core.ids import SnowflakeGenerator, generate_ulid, random_alphanumeric


class FrozenClock:
    def __init__(self, seconds: float) -> None:
        self.seconds = seconds

    def __call__(self) -> float:
        return self.seconds


class TestSnowflakeGenerator:
    def test_ids_strictly_increase(self) -> None:
        generator = SnowflakeGenerator(instance_id=3)

        ids = [generator.next_id() for _ in range(5000)]

        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_layout_carries_instance_id(self) -> None:
        generator = SnowflakeGenerator(instance_id=42, epoch_ms=0, clock=FrozenClock(2.0))

        first = generator.next_id()

        assert first >> 22 == 2000
        assert (first >> 12) & 0x3FF == 42
        assert first & 0xFFF == 0

    def test_sequence_overflow_borrows_next_millisecond(self) -> None:
        generator = SnowflakeGenerator(epoch_ms=0, clock=FrozenClock(10.0))

        ids = [generator.next_id() for _ in range(4097)]

        assert ids[-2] >> 22 == 10000
        assert ids[-1] >> 22 == 10001
        assert len(set(ids)) == 4097

    def test_clock_going_backwards_stays_monotonic(self) -> None:
        clock = FrozenClock(1000.0)
        generator = SnowflakeGenerator(epoch_ms=0, clock=clock)
        before = generator.next_id()

        clock.seconds = 999.5
        after = generator.next_id()

        assert after > before

    def test_concurrent_callers_get_unique_ids(self) -> None:
        generator = SnowflakeGenerator(instance_id=1)
        results: list = []
        lock = threading.Lock()

        def worker() -> None:
            local = [generator.next_id() for _ in range(500)]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(results)) == 4000

    @pytest.mark.parametrize("instance_id", [-1, 1024])
    def test_instance_id_out_of_range(self, instance_id: int) -> None:
        with pytest.raises(ValueError):
            SnowflakeGenerator(instance_id=instance_id)


def test_random_alphanumeric_length_and_alphabet() -> None:
    value = random_alphanumeric(64)

    assert len(value) == 64
    assert value.isalnum()
    assert value.isascii()


def test_generate_ulid_is_26_chars() -> None:
    assert len(generate_ulid()) == 26
