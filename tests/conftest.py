import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

os.environ.setdefault("FIREWATCH_POLLING_ENABLED", "false")

from firewatch.store.redis import StoreHandle


# Skip integration tests unless explicitly enabled
def pytest_addoption(parser):
    parser.addoption("--integration", action="store_true", default=False, help="Run integration tests")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_767_225_600.0):  # 2026-01-01T00:00:00Z
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def datetime(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=timezone.utc)


def _bound(value, lower: bool):
    if value in ("-inf", float("-inf")):
        return lambda score: True
    if value in ("+inf", "inf", float("inf")):
        return lambda score: True
    exclusive = isinstance(value, str) and value.startswith("(")
    number = float(value[1:] if exclusive else value)
    if lower:
        return (lambda s: s > number) if exclusive else (lambda s: s >= number)
    return (lambda s: s < number) if exclusive else (lambda s: s <= number)


class FakePipeline:
    """Queues commands and runs them in order on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def __getattr__(self, name):
        method = getattr(self._redis, name)

        def queue(*args, **kwargs):
            self._ops.append((method, args, kwargs))
            return self

        return queue

    async def execute(self):
        ops, self._ops = self._ops, []
        return [await method(*args, **kwargs) for method, args, kwargs in ops]

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self._ops = []


class FakeRedis:
    """In-memory subset of the redis.asyncio API with decode_responses=True."""

    def __init__(self, clock=None):
        self._clock = clock or FakeClock()
        self.data = {}
        self.expiry = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("fake redis is down")

    def _live(self, key):
        expires = self.expiry.get(key)
        if expires is not None and expires <= self._clock():
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.data

    def _zset(self, key):
        if not self._live(key):
            return {}
        return self.data[key]

    def keys_matching(self, prefix):
        return sorted(k for k in list(self.data) if k.startswith(prefix) and self._live(k))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        self.closed = True

    async def get(self, key):
        self._check()
        if not self._live(key):
            return None
        value = self.data[key]
        return value if isinstance(value, str) else None

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = str(value)
        if ex is not None:
            self.expiry[key] = self._clock() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self._live(key):
                removed += 1
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return removed

    async def expire(self, key, seconds):
        self._check()
        if not self._live(key):
            return False
        self.expiry[key] = self._clock() + seconds
        return True

    async def ttl(self, key):
        self._check()
        if not self._live(key):
            return -2
        if key not in self.expiry:
            return -1
        return int(self.expiry[key] - self._clock())

    async def zadd(self, key, mapping):
        self._check()
        zset = self._zset(key)
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        self.data[key] = zset
        return added

    async def zremrangebyscore(self, key, min, max):
        self._check()
        zset = self._zset(key)
        low, high = _bound(min, True), _bound(max, False)
        doomed = [m for m, s in zset.items() if low(s) and high(s)]
        for member in doomed:
            del zset[member]
        return len(doomed)

    async def zcard(self, key):
        self._check()
        return len(self._zset(key))

    async def zcount(self, key, min, max):
        self._check()
        low, high = _bound(min, True), _bound(max, False)
        return sum(1 for s in self._zset(key).values() if low(s) and high(s))

    def _sorted(self, key):
        return sorted(self._zset(key).items(), key=lambda item: (item[1], item[0]))

    async def zrange(self, key, start, end, withscores=False):
        self._check()
        items = self._sorted(key)
        stop = None if end == -1 else end + 1
        items = items[start:stop]
        return items if withscores else [m for m, _ in items]

    async def zrangebyscore(self, key, min, max, start=None, num=None, withscores=False):
        self._check()
        low, high = _bound(min, True), _bound(max, False)
        items = [(m, s) for m, s in self._sorted(key) if low(s) and high(s)]
        if start is not None and num is not None:
            items = items[start:start + num]
        return items if withscores else [m for m, _ in items]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest_asyncio.fixture
async def store_handle(fake_redis):
    handle = StoreHandle("redis://fake:6379/0", client=fake_redis)
    await handle.acquire()
    yield handle
    await handle.release()
