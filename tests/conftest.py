"""Shared pytest fixtures.

Each test gets a fresh application bound to an in-memory SQLite
database. Notifications run synchronously and outgoing email is
collected in the mailer outbox instead of being delivered.
"""
from __future__ import annotations

import itertools
from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from shareskippy import create_app, db
from shareskippy.models import Dog, Profile, ProfileRole, UserActivity, UserSettings

CRON_TOKEN = "test-cron-token"

_counter = itertools.count()


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "JWT_SECRET_KEY": "test-secret-key-with-at-least-32-bytes",
            "CRON_SECRET_TOKEN": CRON_TOKEN,
            "APP_URL": "https://shareskippy.test",
            "NOTIFICATIONS_SYNC": True,
            "MEETING_RATE_LIMIT": 3,
            "MEETING_RATE_WINDOW": 60,
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(app):
    return app.extensions["mailer"].outbox


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CRON_TOKEN}"}


@pytest.fixture
def make_profile(app):
    """Create and commit a profile; keyword arguments override defaults."""

    def factory(
        profile_id: str | None = None,
        *,
        activity: list[datetime] | None = None,
        notifications: bool = True,
        dogs: list[str] | None = None,
        **fields,
    ) -> Profile:
        n = next(_counter)
        values = dict(
            email=f"member{n}@example.com",
            first_name=f"Member{n}",
            last_name="Tester",
            role=ProfileRole.DOG_OWNER,
            bio="Loves long walks with dogs.",
            phone_number="+1 415 555 0100",
        )
        values.update(fields)
        profile = Profile(**values)
        if profile_id is not None:
            profile.id = profile_id
        profile.set_password("password123")
        profile.settings = UserSettings(email_notifications=notifications)
        for name in dogs or []:
            profile.dogs.append(Dog(name=name))
        for occurred_at in activity or []:
            profile.activities.append(UserActivity(occurred_at=occurred_at))
        db.session.add(profile)
        db.session.commit()
        return profile

    return factory


@pytest.fixture
def auth_headers(app):
    def headers_for(profile: Profile) -> dict:
        token = create_access_token(identity=profile.id)
        return {"Authorization": f"Bearer {token}"}

    return headers_for
