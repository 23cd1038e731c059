import pytest

from app import create_app
from config import TestConfig
from data_models import db


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app):
    return app.extensions["catalog"]


@pytest.fixture
def author(catalog):
    return catalog.authors.create({
        "first_name": "Ursula",
        "family_name": "LeGuin",
        "date_of_birth": "1929-10-21",
    })


@pytest.fixture
def fantasy(catalog):
    return catalog.genres.create({"name": "Fantasy"})


@pytest.fixture
def book(catalog, author, fantasy):
    return catalog.books.create({
        "title": "A Wizard of Earthsea",
        "author": str(author.id),
        "summary": "Ged learns the true names of things.",
        "isbn": "9780547773742",
        "genre": str(fantasy.id),
    })


def book_form(author, /, **overrides):
    form = {
        "title": "The Tombs of Atuan",
        "author": str(author.id),
        "summary": "Tenar serves the Nameless Ones.",
        "isbn": "9781442459908",
    }
    form.update(overrides)
    return form
