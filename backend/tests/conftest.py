"""
Pytest fixtures for marketplace backend tests.

Provides an in-memory database, the test client and small factories for
catalog items and sale sessions. file_app runs on a file-backed SQLite
database so threaded tests get one connection per thread.
"""

import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.services import catalog_service, session_service, settings_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_PST_RATE': '0',
        'DEFAULT_GST_RATE': '0',
        'ENFORCE_SESSION_CURATION': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """Application on a throwaway SQLite file; each thread pushes its own app context."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'marketplace.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_PST_RATE': '0',
        'DEFAULT_GST_RATE': '0',
        'ENFORCE_SESSION_CURATION': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: catalog item with prices in cents; tracked with 10 units by default."""
    def _make(name="Tote bag", cost=200, price=500, stock=10, track_stock=True, **extra):
        data = {
            "name": name,
            "cost_price_cents": cost,
            "sale_price_cents": price,
            "current_stock": stock,
            "track_stock": track_stock,
        }
        data.update(extra)
        return catalog_service.create_item(data)
    return _make


@pytest.fixture(scope='function')
def make_session(db_session):
    """Factory: sale session, optionally curated with the given items."""
    def _make(name="Saturday market", items=(), **extra):
        data = {"name": name}
        data.update(extra)
        session = session_service.create_session(data)
        if items:
            session_service.curate(session.id, [item.id for item in items])
        return session
    return _make


@pytest.fixture(scope='function')
def canadian_rates(db_session):
    """PST 7% + GST 5%."""
    return settings_service.update_sales_settings(pst_rate="0.07", gst_rate="0.05")
