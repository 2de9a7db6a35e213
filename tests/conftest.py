import asyncio
import os
import pytest
from fastapi.testclient import TestClient
import sys
from pathlib import Path

# Add the project root (WORKDIR) to sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from geosaude.core.cache_store import InMemoryCacheStore
from geosaude.schemas.facility import FacilityRecord
from geosaude.schemas.geo import GeoPoint, PostalAddress
from geosaude.utils.geocode import GeocodingResolver

MIN_INTERVAL = 1.1

# Brasília-area fixtures
CEILANDIA = GeoPoint(latitude=-15.8747, longitude=-48.0961)
SAMAMBAIA = GeoPoint(latitude=-15.9058, longitude=-48.0641)
ESPLANADA = GeoPoint(latitude=-15.7998, longitude=-47.8645)


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeNominatim:
    """
    Answers by substring match on the query. A value can be a GeoPoint, None
    (not found) or an exception instance to raise.
    """

    def __init__(self, answers=None, default=None, clock=None, delay: float = 0.0):
        self.answers = answers or {}
        self.default = default
        self.clock = clock
        self.delay = delay
        self.calls = []
        self.dispatched = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def search(self, query, country_code="br"):
        self.calls.append(query)
        if self.clock is not None:
            self.dispatched.append(self.clock())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            for needle, answer in self.answers.items():
                if needle in query:
                    if isinstance(answer, Exception):
                        raise answer
                    return answer
            return self.default
        finally:
            self.in_flight -= 1


class FakeViaCep:
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    async def lookup(self, cep):
        self.calls.append(cep)
        answer = self.answers.get(cep)
        if isinstance(answer, Exception):
            raise answer
        return answer


def postal(street="QNM 18", neighborhood="Ceilândia Sul", city="Brasília", state="DF"):
    return PostalAddress(street=street, neighborhood=neighborhood, city=city, state=state)


def make_resolver(primary=None, fallback=None, store=None, clock=None, **kwargs):
    clock = clock or FakeClock()
    return GeocodingResolver(
        primary=primary or FakeNominatim(),
        fallback=fallback or FakeViaCep(),
        store=store if store is not None else InMemoryCacheStore(),
        min_interval=MIN_INTERVAL,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def run(coro):
    return asyncio.run(coro)


FACILITIES = {
    "ubs": [
        FacilityRecord(id=1, name="UBS 1 Ceilândia", kind="ubs", latitude=-15.8747, longitude=-48.0961),
        FacilityRecord(id=2, name="UBS 2 Samambaia", kind="ubs", latitude=-15.9058, longitude=-48.0641),
        FacilityRecord(id=3, name="UBS 1 Asa Sul", kind="ubs", latitude=-15.7998, longitude=-47.8645),
        FacilityRecord(id=4, name="UBS sem coordenadas", kind="ubs"),
        FacilityRecord(id=5, name="UBS desativada", kind="ubs", latitude=-15.8748, longitude=-48.0962, active=False),
    ],
    "ong": [
        FacilityRecord(id=10, name="ONG Vida", kind="ong", latitude=-15.8800, longitude=-48.1000),
    ],
    "equipamento": [],
    "paciente": [],
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def api_primary():
    return FakeNominatim(
        answers={"QNM 18": CEILANDIA, "Quadra 302": SAMAMBAIA},
        default=None,
    )


@pytest.fixture(scope="session")
def client(api_primary):
    from geosaude.core.registry import set_store
    from geosaude.core.store import DataStore

    os.environ["TESTING"] = "1"
    from geosaude.main import app

    resolver = make_resolver(
        primary=api_primary,
        fallback=FakeViaCep({"72210180": postal()}),
    )
    set_store(DataStore(resolver=resolver, facilities=FACILITIES, meta={"cache_backend": "memory"}))

    # Using context manager ensures lifespan runs before the first request
    with TestClient(app) as c:
        yield c
    set_store(None)
