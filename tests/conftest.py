from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from campus_library import create_app
from campus_library.config import Config
from campus_library.extensions import db
from campus_library.models import College, Role, User
from campus_library.services.audit_service import InventoryAuditService
from campus_library.services.catalog_service import CatalogService

DAY0 = datetime(2026, 3, 2, 9, 0)


def day(n: int, hour: int = 9) -> datetime:
    return DAY0.replace(hour=hour) + timedelta(days=n)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "testing-jwt-secret-that-is-long-enough-for-hs256"
    LIBRARY_AUDIT_ENABLED = False
    LOG_LEVEL = "DEBUG"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role=Role.STUDENT, college=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=f"{role}{n}",
            email=f"{role}{n}@campus.test",
            role=role,
            college_id=college.id if college else None,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def college(app):
    c = College(name="North Campus")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def other_college(app):
    c = College(name="South Campus")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def librarian(make_user, college):
    return make_user(Role.LIBRARIAN, college)


@pytest.fixture
def hod(make_user, college):
    return make_user(Role.HOD, college)


@pytest.fixture
def faculty(make_user, college):
    return make_user(Role.FACULTY, college)


@pytest.fixture
def student(make_user, college):
    return make_user(Role.STUDENT, college)


@pytest.fixture
def other_librarian(make_user, other_college):
    return make_user(Role.LIBRARIAN, other_college)


@pytest.fixture
def make_book(app):
    def _make(college, copies=1, code=None, title="Concepts of Physics", **extra):
        data = {"title": title, "author": "H. C. Verma", "genre": "Science", **extra}
        if code:
            data["unique_code"] = code
        return CatalogService.create_book(college.id, data, copies)

    return _make


@pytest.fixture
def consistent(app):
    """Call after an operation: every book's cached counters match its copies."""
    def _check():
        assert InventoryAuditService.find_mismatches() == []

    return _check


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers
