import pytest

from fakes import FakeRunner, FakeSource, FakeSurface, ManualLoop, make_log


@pytest.fixture
def loop():
    return ManualLoop()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def log_stream():
    return make_log()


@pytest.fixture
def log(log_stream):
    return log_stream[0]
