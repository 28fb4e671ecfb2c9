from __future__ import annotations

import pytest

from cce_operator.controller import Handler
from cce_operator.controller.context import Context
from cce_operator.huawei.driver import DriverCache
from cce_operator.store import InMemoryStore

from tests.fakes import CREDENTIAL, CREDENTIAL_DATA, NAMESPACE, FakeCloud, Sleeper


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
async def store() -> InMemoryStore:
    s = InMemoryStore()
    await s.create_secret(NAMESPACE, CREDENTIAL, CREDENTIAL_DATA)
    return s


@pytest.fixture
def sleeper() -> Sleeper:
    return Sleeper()


@pytest.fixture
def drivers(store: InMemoryStore, cloud: FakeCloud) -> DriverCache:
    return DriverCache(store, factory=cloud.driver)


@pytest.fixture
def handler(store: InMemoryStore, drivers: DriverCache, sleeper: Sleeper) -> Handler:
    return Handler(store, store, drivers, sleep=sleeper)


@pytest.fixture
def ctx(store: InMemoryStore, cloud: FakeCloud, sleeper: Sleeper) -> Context:
    return Context(store=store, secrets=store, driver=cloud.driver(), sleep=sleeper)
