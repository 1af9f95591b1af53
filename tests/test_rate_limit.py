from amw.rate_limit import TokenBucket


def test_take_within_capacity():
    bucket = TokenBucket(600, capacity=3)
    assert all(bucket.take() for _ in range(3))


def test_take_gives_up_after_timeout():
    bucket = TokenBucket(1, capacity=1)
    assert bucket.take()
    assert bucket.take(timeout=0.05) is False


def test_tokens_refill():
    bucket = TokenBucket(6000, capacity=1)
    assert bucket.take()
    assert bucket.take(timeout=1.0)
