import pytest

from rapport import create_app, db
from rapport.models import User
from rapport.relations import RelationStore

DEFAULT_PASSWORD = "Secret#123"


class TestConfig:
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    CONTACTS_POLL_SECONDS = 10
    CHAT_POLL_SECONDS = 5


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return RelationStore(db.session)


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(first_name=None, last_name="Tester", email=None, password=DEFAULT_PASSWORD):
        counter["n"] += 1
        first_name = first_name or f"User{counter['n']}"
        email = email or f"{first_name.lower()}@example.com"
        user = User(first_name=first_name, last_name=last_name, email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def trio(make_user):
    """Three users with ids 1, 2 and 3."""
    return make_user("Ada"), make_user("Bob"), make_user("Cy")
