"""
Shared fixtures: a Flask app on in-memory SQLite and its test client.
"""
import pytest

from panelflow import create_app
from panelflow.config import TestConfig
from panelflow.models import db


@pytest.fixture
def app():
    """Create Flask application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
