from dashanddots.services.rooms import CHAT, MOVE, RateLimiter, TokenBucket


def make_limiter(clock):
    return RateLimiter({MOVE: (4, 2), CHAT: (5, 2)}, clock=clock)


def test_bucket_refills_up_to_capacity():
    bucket = TokenBucket(capacity=2, refill_rate=1, tokens=0, last_refill=0.0)
    assert bucket.take(0.0) is False
    assert bucket.take(1.0) is True
    bucket.refill(100.0)
    assert bucket.tokens == 2


def test_burst_then_throttle(clock):
    limiter = make_limiter(clock)
    limiter.open('c1')
    assert [limiter.allow('c1', MOVE) for _ in range(5)] == [True, True, True, True, False]

    clock.advance(0.5)
    assert limiter.allow('c1', MOVE) is True
    assert limiter.allow('c1', MOVE) is False


def test_categories_and_connections_are_independent(clock):
    limiter = make_limiter(clock)
    limiter.open('c1')
    limiter.open('c2')
    for _ in range(4):
        limiter.allow('c1', MOVE)
    assert limiter.allow('c1', MOVE) is False
    assert limiter.allow('c1', CHAT) is True
    assert limiter.allow('c2', MOVE) is True


def test_close_discards_buckets(clock):
    limiter = make_limiter(clock)
    limiter.open('c1')
    assert limiter.is_open('c1')
    limiter.close('c1')
    assert not limiter.is_open('c1')
    limiter.close('c1')


def test_unopened_or_closed_connection_is_refused(clock):
    limiter = make_limiter(clock)
    assert limiter.allow('late', CHAT) is False
    assert not limiter.is_open('late')

    limiter.open('c1')
    limiter.close('c1')
    assert limiter.allow('c1', MOVE) is False
    # refusing does not bring the buckets back
    assert not limiter.is_open('c1')
