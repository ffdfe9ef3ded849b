"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default env for the test run
os.environ.setdefault("WORKPLACE_ENV", "test")
os.environ.setdefault("LOCK_BACKEND", "local")
os.environ.setdefault("CLEANUP_SWEEP_ENABLED", "false")

from workplace.db import build_sessionmaker, create_all  # noqa: E402
from workplace.dependencies import get_image_storage, get_session_factory  # noqa: E402
from workplace.main import app  # noqa: E402
from workplace.models import Organization, Region, Building, Function  # noqa: E402
from workplace.schemas import (  # noqa: E402
    BuildingCreate,
    FunctionCreate,
    FunctionSeed,
    OrganizationCreate,
    RegionCreate,
    SeedBuilding,
)
from workplace.services.buildings import BuildingService  # noqa: E402
from workplace.services.cache import TimezoneCache  # noqa: E402
from workplace.services.functions import FunctionService  # noqa: E402
from workplace.services.image_storage import ImageStorageService  # noqa: E402
from workplace.services.locking import LocalLockProvider  # noqa: E402
from workplace.services.organizations import OrganizationService  # noqa: E402
from workplace.services.regions import RegionService  # noqa: E402
from workplace.utils.audit import Actor  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32
ACTOR = Actor(display_name="Test Admin", ip_address="127.0.0.1")


class FrozenClock:
    """Controllable ``now`` for services; advance it between mutations."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@dataclass
class Services:
    session_factory: sessionmaker[Session]
    locks: LocalLockProvider
    images: ImageStorageService
    timezones: TimezoneCache
    clock: FrozenClock
    organizations: OrganizationService = field(init=False)
    regions: RegionService = field(init=False)
    buildings: BuildingService = field(init=False)
    functions: FunctionService = field(init=False)

    def __post_init__(self) -> None:
        kwargs = dict(lock_provider=self.locks, images=self.images, timezones=self.timezones, clock=self.clock)
        self.organizations = OrganizationService(self.session_factory, **kwargs)
        self.regions = RegionService(self.session_factory, **kwargs)
        self.buildings = BuildingService(self.session_factory, **kwargs)
        self.functions = FunctionService(self.session_factory, **kwargs)


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    db_engine = create_engine(
        f"sqlite:///{tmp_path / 'workplace_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        future=True,
    )
    create_all(bind=db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_sessionmaker(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def image_root(tmp_path: Path) -> Path:
    root = tmp_path / "images"
    root.mkdir()
    return root


@pytest.fixture
def images(session_factory: sessionmaker[Session], image_root: Path) -> ImageStorageService:
    return ImageStorageService(session_factory, root=image_root, public_base_url="/images")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 4, 9, 2, 30, tzinfo=UTC))


@pytest.fixture
def services(
    session_factory: sessionmaker[Session],
    images: ImageStorageService,
    clock: FrozenClock,
) -> Services:
    return Services(
        session_factory=session_factory,
        locks=LocalLockProvider(),
        images=images,
        timezones=TimezoneCache(session_factory, ttl_seconds=3600),
        clock=clock,
    )


def organization_payload(name: str = "Acme", **overrides) -> OrganizationCreate:
    data = {
        "name": name,
        "domains": [f"{name.lower().replace(' ', '-')}.example.com"],
        "region_name": "North",
        "building": SeedBuilding(
            name="HQ",
            address="1 Main Street",
            latitude=52.37,
            longitude=4.89,
            timezone="Europe/Amsterdam",
        ),
        "function": FunctionSeed(name="Engineering", html_color="#336699"),
    }
    data.update(overrides)
    return OrganizationCreate(**data)


def building_payload(region_id: UUID, name: str = "Annex", **overrides) -> BuildingCreate:
    data = {
        "name": name,
        "region_id": region_id,
        "address": "2 Side Street",
        "latitude": 51.92,
        "longitude": 4.48,
        "timezone": "Europe/Amsterdam",
        "function": {"name": "Facilities", "html_color": "#aa3300"},
    }
    data.update(overrides)
    return BuildingCreate(**data)


@dataclass
class Tenant:
    organization: Organization
    region: Region
    building: Building
    function: Function


@pytest.fixture
def make_tenant(services: Services, db_session: Session) -> Callable[..., Tenant]:
    """Create an organization through the service and return its seeded children."""

    def _factory(name: str = "Acme", **overrides) -> Tenant:
        result = services.organizations.create(organization_payload(name, **overrides), ACTOR)
        assert result.ok, result.outcome
        organization = result.entity
        db_session.expire_all()
        region = db_session.execute(select(Region).where(Region.organization_id == organization.id)).scalar_one()
        building = db_session.execute(select(Building).where(Building.organization_id == organization.id)).scalar_one()
        function = db_session.execute(select(Function).where(Function.building_id == building.id)).scalar_one()
        return Tenant(organization, region, building, function)

    return _factory


@pytest.fixture
def tenant(make_tenant: Callable[..., Tenant]) -> Tenant:
    return make_tenant()


@pytest.fixture
def region_payload() -> Callable[[str], RegionCreate]:
    return lambda name: RegionCreate(name=name)


@pytest.fixture
def function_payload() -> Callable[..., FunctionCreate]:
    def _factory(building_id: UUID, name: str, adjacent: list[UUID] | None = None) -> FunctionCreate:
        return FunctionCreate(
            building_id=building_id,
            name=name,
            html_color="#112233",
            adjacent_function_ids=adjacent or [],
        )

    return _factory


@pytest.fixture
def override_services(session_factory: sessionmaker[Session], images: ImageStorageService) -> Iterator[None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_image_storage] = lambda: images
    yield
    app.dependency_overrides.pop(get_session_factory, None)
    app.dependency_overrides.pop(get_image_storage, None)


@pytest.fixture
async def client(override_services: None) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
