from contextlib import contextmanager

import click
from flask import current_app
from werkzeug.datastructures import FileStorage
from flask.cli import AppGroup, with_appcontext
from mediscript.extensions import db
from mediscript.services import record_service
from mediscript.services.auth_service import AuthError
from mediscript.services.auth_session import AuthSession
from mediscript.services.record_service import RecordServiceError, PatientValidationError
from mediscript.utils.treatment_formatter import format_treatment, has_bullet_points, Bold, LineBreak, ListItem

doctors_cli = AppGroup('doctors', help='Manage doctor accounts.')
patients_cli = AppGroup('patients', help='Work with patient records as a signed-in doctor.')


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all database tables."""
    db.create_all()
    click.echo("Database initialized successfully!")


def _log_transitions(state):
    if state.error:
        current_app.logger.warning(f"Auth session error: {state.error}")
    elif state.user:
        current_app.logger.debug(f"Signed in as account {state.user.uid}")


@contextmanager
def _signed_in(email, password):
    """Sign in for the duration of one command; always signs out again."""
    session = AuthSession()
    session.subscribe(_log_transitions)
    try:
        session.login(email, password)
    except AuthError as e:
        raise click.ClickException(str(e))
    try:
        yield session
    finally:
        session.logout()


def _render_treatment(text):
    bullet = '  • ' if has_bullet_points(text) else '  '
    for block in format_treatment(text):
        if isinstance(block, LineBreak):
            click.echo('')
            continue
        line = ''.join(
            click.style(span.text, bold=True) if isinstance(span, Bold) else span.text
            for span in block.spans
        )
        click.echo((bullet if isinstance(block, ListItem) else '  ') + line)


def _echo_patient_row(patient):
    created = patient.created_at.strftime('%Y-%m-%d %H:%M') if patient.created_at else '-'
    click.echo(f"{patient.id}  {created}  {patient.name} ({patient.age}, {patient.sex})")


def _echo_warnings(warnings):
    for warning in warnings:
        click.secho(f"Warning: {warning['title']} - {warning['message']}", fg='yellow')


email_option = click.option('--email', prompt=True, help='Doctor account email.')
password_option = click.option('--password', prompt=True, hide_input=True, help='Doctor account password.')


@doctors_cli.command('register')
@email_option
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--name', prompt=True)
@click.option('--specialization', default=None)
@click.option('--clinic-name', default=None)
@click.option('--clinic-address', default=None)
@click.option('--phone-number', default=None)
def register_doctor_command(email, password, name, specialization, clinic_name, clinic_address, phone_number):
    """Register a doctor account."""
    profile = {
        'name': name,
        'specialization': specialization,
        'clinic_name': clinic_name,
        'clinic_address': clinic_address,
        'phone_number': phone_number,
    }
    session = AuthSession()
    try:
        state = session.register(email, password, {k: v for k, v in profile.items() if v is not None})
    except AuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"Registered doctor {state.doctor['name']} (id {state.user.uid})")
    session.logout()


@doctors_cli.command('profile')
@email_option
@password_option
@click.option('--set', 'updates', multiple=True, metavar='FIELD=VALUE', help='Profile field to change.')
def doctor_profile_command(email, password, updates):
    """Show, and optionally update, the doctor profile."""
    data = {}
    for item in updates:
        if '=' not in item:
            raise click.BadParameter(f"Expected FIELD=VALUE, got '{item}'", param_hint='--set')
        key, value = item.split('=', 1)
        data[key.strip()] = value

    with _signed_in(email, password) as session:
        if data:
            try:
                session.update_doctor_profile(data)
            except AuthError as e:
                raise click.ClickException(str(e))

        for key, value in session.state.doctor.items():
            click.echo(f"{key}: {value if value is not None else ''}")


@patients_cli.command('add')
@email_option
@password_option
@click.option('--name', prompt=True)
@click.option('--age', prompt=True, type=int)
@click.option('--sex', prompt=True, type=click.Choice(['Male', 'Female', 'Other'], case_sensitive=False))
@click.option('--address', default='')
@click.option('--symptoms', prompt=True)
@click.option('--note', 'diagnosis_description', prompt="Initial diagnosis description")
@click.option('--medical-image', type=click.File('rb'), default=None)
@click.option('--patient-image', type=click.File('rb'), default=None)
def add_patient_command(email, password, name, age, sex, address, symptoms, diagnosis_description,
                        medical_image, patient_image):
    """Create a patient record with an AI diagnosis."""
    def as_upload(file):
        if file is None:
            return None
        return FileStorage(stream=file, filename=file.name)

    data = {
        'name': name, 'age': age, 'sex': sex, 'address': address,
        'symptoms': symptoms, 'diagnosis_description': diagnosis_description,
    }
    with _signed_in(email, password) as session:
        try:
            result = record_service.add_patient(
                session.doctor_id, data,
                medical_image=as_upload(medical_image),
                patient_image=as_upload(patient_image)
            )
        except PatientValidationError as e:
            details = '; '.join(f"{k}: {v}" for k, v in e.fields.items())
            raise click.ClickException(f"{e} ({details})")
        except RecordServiceError as e:
            raise click.ClickException(str(e))

    _echo_warnings(result.warnings)
    click.echo(f"Created patient {result.patient.id}")
    click.echo(f"Diagnosis: {result.patient.diagnosis}")
    click.echo("Treatment:")
    _render_treatment(result.patient.treatment)


@patients_cli.command('list')
@email_option
@password_option
def list_patients_command(email, password):
    """List patients, newest first."""
    with _signed_in(email, password) as session:
        for patient in record_service.get_patients_by_doctor(session.doctor_id):
            _echo_patient_row(patient)


@patients_cli.command('search')
@email_option
@password_option
@click.argument('term')
def search_patients_command(email, password, term):
    """Find patients whose name contains TERM."""
    with _signed_in(email, password) as session:
        for patient in record_service.search_patients(session.doctor_id, term):
            _echo_patient_row(patient)


@patients_cli.command('show')
@email_option
@password_option
@click.argument('patient_id')
def show_patient_command(email, password, patient_id):
    """Show one patient record with its formatted treatment plan."""
    with _signed_in(email, password) as session:
        try:
            patient = record_service.get_patient(patient_id, session.doctor_id)
        except RecordServiceError as e:
            raise click.ClickException(str(e))

    _echo_patient_row(patient)
    click.echo(f"Symptoms: {patient.symptoms}")
    click.echo(f"Diagnosis: {patient.diagnosis}")
    click.echo("Treatment:")
    _render_treatment(patient.treatment)


@patients_cli.command('delete')
@email_option
@password_option
@click.argument('patient_id')
@click.confirmation_option(prompt='Delete this patient record permanently?')
def delete_patient_command(email, password, patient_id):
    """Delete a patient record (hosted images are left in place)."""
    with _signed_in(email, password) as session:
        try:
            record_service.delete_patient(patient_id, session.doctor_id)
        except RecordServiceError as e:
            raise click.ClickException(str(e))
    click.echo(f"Deleted patient {patient_id}")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(doctors_cli)
    app.cli.add_command(patients_cli)
