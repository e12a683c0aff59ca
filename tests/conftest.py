"""Pytest configuration and fixtures."""

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from spectable.api.dependencies import get_coordinator
from spectable.database import Base, get_db
from spectable.main import app
from spectable.models import (
    Collection,
    Product,
    Shop,
    SpecificationTemplate,
    TemplateAssignment,
    TemplateAssignmentTarget,
)
from spectable.models.enums import AssignmentType
from spectable.services.rebuild_coordinator import LocalKeyedLock, RebuildCoordinator

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/spectable", "/spectable_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def session_factory():
    """Factory for additional sessions on the test database (concurrent readers)."""
    return TestingSessionLocal


@pytest.fixture
def coordinator():
    """Rebuild coordinator on the test database, without debounce delays."""
    return RebuildCoordinator(
        session_factory=TestingSessionLocal,
        lock=LocalKeyedLock(),
        retry_delay=0.01,
        cooldown=0,
        lock_timeout=5,
    )


@pytest.fixture(scope="function")
def client(db, coordinator):
    """Create a test client with database and coordinator overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def shop(db):
    """Create a test shop."""
    test_shop = Shop(shop_domain="test-shop.myshopify.com")
    db.add(test_shop)
    db.commit()
    return test_shop


@pytest.fixture
def make_template(db, shop):
    """Factory for templates, optionally with an assignment and targets."""

    def _make(
        name: str,
        assignment_type: AssignmentType | None = None,
        targets: list[str] | None = None,
        is_active: bool = True,
        shop_id: int | None = None,
    ) -> SpecificationTemplate:
        template = SpecificationTemplate(
            shop_id=shop_id or shop.id, name=name, is_active=is_active
        )
        db.add(template)
        db.flush()

        if assignment_type is not None:
            assignment = TemplateAssignment(
                template_id=template.id,
                shop_id=template.shop_id,
                assignment_type=assignment_type,
            )
            db.add(assignment)
            db.flush()
            for target_id in targets or []:
                db.add(
                    TemplateAssignmentTarget(
                        assignment_id=assignment.id,
                        target_shopify_id=target_id,
                        target_type=assignment_type,
                    )
                )

        db.commit()
        return template

    return _make


@pytest.fixture
def add_catalog(db, shop):
    """Factory that mirrors products and collections into the catalog."""

    def _add(
        products: list[str] | None = None,
        collections: list[str] | None = None,
        shop_id: int | None = None,
    ) -> None:
        for shopify_id in products or []:
            db.add(Product(shop_id=shop_id or shop.id, shopify_id=shopify_id))
        for shopify_id in collections or []:
            db.add(Collection(shop_id=shop_id or shop.id, shopify_id=shopify_id))
        db.commit()

    return _add
