from datetime import datetime, timedelta

import pytest
from dateutil.tz import tzutc

from matching.matcher import CaseMatcher
from matching.store import CaseStore


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 15, 10, 0, tzinfo=tzutc())

    def __call__(self):
        return self.now

    def advance(self, seconds=1):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return CaseStore(clock=clock)


@pytest.fixture
def matcher(store):
    return CaseMatcher(store)


@pytest.fixture
def phishing_a():
    return {"indicators": ["1.2.3.4"], "description": "phishing email with malicious link"}


@pytest.fixture
def phishing_b():
    return {"indicators": ["1.2.3.4"], "description": "phishing campaign detected"}
