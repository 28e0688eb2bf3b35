"""
Shared pytest fixtures for the QA Evidence Hub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - png_bytes / png_data_url: small in-memory images built with Pillow
    - analyst / admin: pre-created users
"""

import io

import pytest
from PIL import Image

from qa_evidence import create_app
from qa_evidence.models import db as _db
from qa_evidence.services.image_editor import bytes_to_data_url


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Images ───────────────────────────────────────────────────────────────


def make_png(size=(100, 80), color=(255, 255, 255, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def png_bytes():
    return make_png()


@pytest.fixture()
def png_data_url(png_bytes):
    return bytes_to_data_url(png_bytes)


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def analyst():
    from qa_evidence.services.user_service import create_user
    user = create_user({"acronym": "ana", "name": "Ana Costa", "password": "secret", "role": "USER"})
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    from qa_evidence.services.user_service import create_user
    user = create_user({"acronym": "VTP", "name": "Valeria", "password": "VTP", "role": "ADMIN"})
    _db.session.commit()
    return user


@pytest.fixture()
def png_factory():
    """Build PNG bytes of a given size / colour."""
    return make_png
