import pytest

from app import create_app
from association import Bookshelf
from data_models import db


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'MAPPING_STRATEGY': 'bidirectional',
    })
    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture
def shelf_for(app):
    """Build a :class:`Bookshelf` for a strategy name inside the app context."""
    def make(strategy):
        return Bookshelf(strategy)
    return make
