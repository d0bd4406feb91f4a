"""Shared fixtures: a testing app on in-memory SQLite and a signed-up doctor."""
import io

import pytest
from werkzeug.datastructures import FileStorage

from mediscript import create_app
from mediscript.extensions import db
from mediscript.services import auth_service

DOCTOR_PASSWORD = "Str0ng!Passw0rd"


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def doctor(app):
    return auth_service.register_doctor(
        "house@example.com", DOCTOR_PASSWORD, {"name": "Gregory House", "specialization": "Diagnostics"}
    )


@pytest.fixture
def other_doctor(app):
    return auth_service.register_doctor(
        "wilson@example.com", DOCTOR_PASSWORD, {"name": "James Wilson"}
    )


@pytest.fixture
def auth_headers(client, doctor):
    resp = client.post("/api/auth/login", json={"email": "house@example.com", "password": DOCTOR_PASSWORD})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.get_json()['access_token']}"}


@pytest.fixture
def patient_data():
    return {
        "name": "John Doe",
        "age": 42,
        "sex": "Male",
        "address": "12 Baker Street",
        "symptoms": "persistent cough and mild fever",
        "diagnosis_description": "suspected upper respiratory infection",
    }


def make_image(name="scan.png", content_type="image/png", size=128):
    return FileStorage(stream=io.BytesIO(b"\x89PNG" + b"0" * size), filename=name, content_type=content_type)
