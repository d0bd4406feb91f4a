"""Tests for the flask CLI commands."""
import pytest

from mediscript.services.auth_session import AuthSession
from tests.conftest import DOCTOR_PASSWORD

CREDENTIALS = ["--email", "house@example.com", "--password", DOCTOR_PASSWORD]


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def add_patient(runner, name="John Doe"):
    result = runner.invoke(args=[
        "patients", "add", *CREDENTIALS, "--name", name, "--age", "40", "--sex", "male",
        "--symptoms", "dry cough", "--note", "likely viral",
    ])
    assert result.exit_code == 0, result.output
    return result


def test_init_db(runner):
    result = runner.invoke(args=["init-db"])
    assert "Database initialized" in result.output


def test_register_doctor(runner):
    result = runner.invoke(args=[
        "doctors", "register", "--email", "foreman@example.com", "--password", DOCTOR_PASSWORD,
        "--name", "Eric Foreman",
    ])
    assert result.exit_code == 0, result.output
    assert "Registered doctor Eric Foreman" in result.output


def test_profile_update(runner, doctor):
    result = runner.invoke(args=["doctors", "profile", *CREDENTIALS, "--set", "clinic_name=PPTH"])
    assert result.exit_code == 0, result.output
    assert "clinic_name: PPTH" in result.output


def test_profile_rejects_malformed_set(runner, doctor):
    result = runner.invoke(args=["doctors", "profile", *CREDENTIALS, "--set", "clinic_name"])
    assert result.exit_code != 0


def test_wrong_password(runner, doctor):
    result = runner.invoke(args=["patients", "list", "--email", "house@example.com", "--password", "Wr0ng!Password"])
    assert result.exit_code == 1
    assert "Invalid email or password" in result.output


def test_add_renders_fallback_treatment(runner, doctor):
    result = add_patient(runner)
    assert "Created patient" in result.output
    assert "Warning: AI Diagnosis Generation Failed" in result.output
    assert "• Rest and adequate hydration." in result.output


def test_list_search_show_delete(runner, doctor):
    add_patient(runner)
    add_patient(runner, name="Alice Smith")

    listed = runner.invoke(args=["patients", "list", *CREDENTIALS]).output
    assert "John Doe" in listed and "Alice Smith" in listed

    found = runner.invoke(args=["patients", "search", *CREDENTIALS, "smi"]).output
    assert "Alice Smith" in found and "John Doe" not in found

    patient_id = found.split()[0]
    shown = runner.invoke(args=["patients", "show", *CREDENTIALS, patient_id]).output
    assert "Symptoms: dry cough" in shown

    deleted = runner.invoke(args=["patients", "delete", *CREDENTIALS, patient_id, "--yes"])
    assert deleted.exit_code == 0, deleted.output
    assert "Alice Smith" not in runner.invoke(args=["patients", "list", *CREDENTIALS]).output


def test_show_unknown_patient(runner, doctor):
    result = runner.invoke(args=["patients", "show", *CREDENTIALS, "missing"])
    assert result.exit_code == 1
    assert "Patient not found" in result.output


@pytest.fixture
def logouts(monkeypatch):
    calls = []
    original = AuthSession.logout

    def logout(self):
        calls.append(self.doctor_id)
        return original(self)

    monkeypatch.setattr(AuthSession, "logout", logout)
    return calls


@pytest.mark.parametrize("args", [
    ["patients", "list", *CREDENTIALS],
    ["patients", "search", *CREDENTIALS, "doe"],
    ["patients", "show", *CREDENTIALS, "missing"],
    ["patients", "delete", *CREDENTIALS, "missing", "--yes"],
    ["doctors", "profile", *CREDENTIALS],
])
def test_every_signed_in_command_signs_out(runner, doctor, logouts, args):
    runner.invoke(args=args)
    assert logouts == [doctor.id]


def test_add_signs_out(runner, doctor, logouts):
    add_patient(runner)
    assert logouts == [doctor.id]
