import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.db import Base, get_db, make_engine
from marketplace.main import app
from marketplace.models.db_models import Company
from marketplace.services.listings import ListingService
from tests.factories import listing_fields


@pytest.fixture
def engine():
    # One shared in-memory database per test
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def companies(db):
    acme = Company(name="Acme Hauling")
    bedrock = Company(name="Bedrock Supply")
    db.add_all([acme, bedrock])
    db.commit()
    return acme, bedrock


@pytest.fixture
def company(companies):
    return companies[0]


@pytest.fixture
def make_listing(db):
    service = ListingService(db)

    def _make(owner_id="owner-1", **overrides):
        return service.create_listing(owner_id, listing_fields(**overrides))

    return _make


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
