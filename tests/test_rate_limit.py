from __future__ import annotations

from taskmate.rate_limit import RateLimiter


class FakeClock:
  def __init__(self, start: float = 1000.0) -> None:
    self.now = start

  def __call__(self) -> float:
    return self.now


def test_fixed_window_blocks_then_reopens() -> None:
  clock = FakeClock()
  rl = RateLimiter(clock=clock)
  assert rl.hit("k", limit=2, window_seconds=60) == (True, 0)
  assert rl.hit("k", limit=2, window_seconds=60) == (True, 0)
  allowed, retry_after = rl.hit("k", limit=2, window_seconds=60)
  assert not allowed
  assert retry_after == 60

  clock.now += 60
  assert rl.hit("k", limit=2, window_seconds=60) == (True, 0)


def test_expired_windows_are_swept() -> None:
  clock = FakeClock()
  rl = RateLimiter(sweep_every=4, clock=clock)
  for i in range(3):
    rl.hit(f"auth:login:email:user{i}@example.com", limit=5, window_seconds=60)
  assert len(rl) == 3

  clock.now += 61
  # Fourth hit triggers the sweep; only the fresh key survives.
  rl.hit("auth:login:email:new@example.com", limit=5, window_seconds=60)
  assert len(rl) == 1


def test_live_windows_survive_a_sweep() -> None:
  clock = FakeClock()
  rl = RateLimiter(sweep_every=2, clock=clock)
  rl.hit("a", limit=1, window_seconds=60)
  clock.now += 10
  rl.hit("b", limit=1, window_seconds=60)
  assert len(rl) == 2
  allowed, _ = rl.hit("a", limit=1, window_seconds=60)
  assert not allowed
