from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from campus_connect import create_app
from campus_connect.extensions import db
from campus_connect.models import ROLE_ADMIN, ROLE_STUDENT, Category, Club, ClubMeeting, Event, EventCategory, User
from campus_connect.seed import ensure_seed_data


ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin123"
STUDENT_USERNAME = "alice"
STUDENT_PASSWORD = "password1"
IMAGE_URL = "https://images.example.com/event.jpg"


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Service-layer tests against a scratch database")
    config.addinivalue_line("markers", "integration: Tests that go through the HTTP client")


def _test_config(tmp_path, **overrides) -> dict:
    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        "WTF_CSRF_ENABLED": False,
        "SEED_DATA": False,
        "SEED_DEMO_DATA": False,
        "AUTO_CREATE_DB": True,
    }
    config.update(overrides)
    return config


@pytest.fixture()
def make_app(tmp_path, monkeypatch):
    """Factory for apps backed by a fresh SQLite file with the base seed loaded."""
    monkeypatch.setenv("ADMIN_USERNAME", ADMIN_USERNAME)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    created = []

    def _make(**overrides):
        app = create_app(_test_config(tmp_path, **overrides))
        with app.app_context():
            ensure_seed_data()
        created.append(app)
        return app

    yield _make

    for app in created:
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def ctx(app):
    """Push an app context for tests that call the service layer directly."""
    with app.app_context():
        yield


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    def _make(username: str, password: str = "password1", role: str = ROLE_STUDENT) -> int:
        with app.app_context():
            user = User(username=username, role=role)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture()
def student(make_user) -> int:
    return make_user(STUDENT_USERNAME, STUDENT_PASSWORD)


@pytest.fixture()
def admin(app) -> int:
    with app.app_context():
        return User.query.filter_by(role=ROLE_ADMIN).first().id


@pytest.fixture()
def make_event(app, admin):
    def _make(
        title: str = "Spring Career Fair",
        *,
        date: datetime | None = None,
        categories: tuple[str, ...] = ("career",),
        time: str = "10:00 AM",
        location: str = "Student Union Ballroom",
    ) -> int:
        with app.app_context():
            event = Event(
                title=title,
                description=f"{title} description text",
                date=date or datetime.utcnow() + timedelta(days=7),
                time=time,
                location=location,
                image_url=IMAGE_URL,
                created_by=admin,
            )
            db.session.add(event)
            db.session.flush()
            for value in categories:
                category = Category.query.filter_by(value=value).first()
                db.session.add(EventCategory(event_id=event.id, category_id=category.id))
            db.session.commit()
            return event.id

    return _make


@pytest.fixture()
def make_club(app, admin):
    def _make(
        name: str = "Coding Club",
        *,
        category: str = "coding",
        meetings: tuple[tuple[datetime, str], ...] = (),
    ) -> int:
        with app.app_context():
            club = Club(
                name=name,
                description=f"{name} meets every week on campus",
                category=category,
                created_by=admin,
            )
            db.session.add(club)
            db.session.flush()
            for date, time in meetings:
                db.session.add(ClubMeeting(club_id=club.id, date=date, time=time, location="Student Center"))
            db.session.commit()
            return club.id

    return _make


def login(client, username: str, password: str):
    resp = client.post("/api/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp


@pytest.fixture()
def student_client(app, student):
    client = app.test_client()
    login(client, STUDENT_USERNAME, STUDENT_PASSWORD)
    return client


@pytest.fixture()
def admin_client(app, admin):
    client = app.test_client()
    login(client, ADMIN_USERNAME, ADMIN_PASSWORD)
    return client
