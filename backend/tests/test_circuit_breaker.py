"""Tests for the cooldown circuit breaker."""

from deepview.services.circuit_breaker import CircuitBreaker


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_closed_by_default():
    breaker = CircuitBreaker(600, clock=FakeClock())
    assert breaker.is_open() == False
    assert breaker.seconds_remaining() == 0


def test_trip_opens_for_cooldown_window():
    clock = FakeClock()
    breaker = CircuitBreaker(600, clock=clock)

    breaker.trip("quota exhausted")
    assert breaker.is_open() == True
    assert breaker.seconds_remaining() == 600

    clock.now += 599
    assert breaker.is_open() == True
    assert breaker.seconds_remaining() == 1

    clock.now += 1
    assert breaker.is_open() == False
    assert breaker.cooldown_until is None


def test_reset_closes_immediately():
    breaker = CircuitBreaker(600, clock=FakeClock())
    breaker.trip()
    breaker.reset()
    assert breaker.is_open() == False


def test_trip_while_open_extends_window():
    clock = FakeClock()
    breaker = CircuitBreaker(100, clock=clock)
    breaker.trip()
    clock.now += 50
    breaker.trip()
    assert breaker.seconds_remaining() == 100
