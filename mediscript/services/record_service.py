# /mediscript/services/record_service.py
"""
Patient record operations.

Creating or updating a record composes up to two image uploads, the AI
diagnosis call and the database write. Upload and AI failures degrade to
empty/fallback values plus a warning; only the write can fail the operation.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from mediscript.extensions import db
from mediscript.models.patient_models import Patient, SEX_CHOICES
from mediscript.utils.cloudinary_util import cloudinary_manager
from mediscript.utils.gemini_util import gemini_client

logger = logging.getLogger(__name__)

MEDICAL_IMAGE_FOLDER = 'medical_images'
PATIENT_IMAGE_FOLDER = 'patient_photos'

REQUIRED_FIELDS = ('name', 'age', 'sex', 'symptoms', 'diagnosis_description')
TEXT_FIELDS = ('name', 'address', 'symptoms', 'diagnosis_description', 'diagnosis', 'treatment')
IMAGE_FIELDS = ('image_url', 'image_public_id', 'patient_image_url', 'patient_image_public_id')
RECENT_PATIENTS_LIMIT = 5
MAX_AGE = 150


class RecordServiceError(Exception):
    """Base class for errors that abort a record operation."""


class PatientValidationError(RecordServiceError):
    def __init__(self, message, fields=None):
        super().__init__(message)
        self.fields = fields or {}


class PatientNotFoundError(RecordServiceError):
    def __init__(self, message='Patient not found'):
        super().__init__(message)


class PatientCreationError(RecordServiceError):
    def __init__(self, message='Failed to create patient record'):
        super().__init__(message)


class PatientUpdateError(RecordServiceError):
    def __init__(self, message='Failed to update patient record'):
        super().__init__(message)


@dataclass
class RecordResult:
    patient: Patient
    warnings: List[dict] = field(default_factory=list)

    def to_dict(self):
        return {'patient': self.patient.to_dict(), 'warnings': self.warnings}


def _warning(code, title, message):
    return {'code': code, 'title': title, 'message': message}


def _utcnow():
    return datetime.utcnow()


def _next_timestamp(previous):
    """A server timestamp strictly after `previous`."""
    now = _utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _coerce_age(value):
    if isinstance(value, bool):
        raise ValueError
    if isinstance(value, str):
        value = value.strip()
    age = int(value)
    if isinstance(value, float) and value != age:
        raise ValueError
    if age < 0 or age > MAX_AGE:
        raise ValueError
    return age


def _clean_fields(data, partial):
    """Validate and normalise patient fields; returns the cleaned dict."""
    if not isinstance(data, dict):
        raise PatientValidationError('Invalid patient data', {'body': 'Expected an object of patient fields'})

    errors = {}
    cleaned = {}

    if not partial:
        for name in REQUIRED_FIELDS:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[name] = 'This field is required'

    for name in TEXT_FIELDS + IMAGE_FIELDS:
        if name in data and name not in errors:
            value = data[name]
            cleaned[name] = '' if value is None else str(value).strip()

    for name in ('name', 'symptoms', 'diagnosis_description'):
        if name in cleaned and not cleaned[name] and name not in errors:
            errors[name] = 'This field cannot be empty'

    if 'age' in data and 'age' not in errors:
        try:
            cleaned['age'] = _coerce_age(data['age'])
        except (TypeError, ValueError, OverflowError):
            errors['age'] = f'Age must be a whole number of years between 0 and {MAX_AGE}'

    if 'sex' in data and 'sex' not in errors:
        sex = str(data['sex']).strip().capitalize() if data['sex'] is not None else ''
        if sex not in SEX_CHOICES:
            errors['sex'] = f"Sex must be one of: {', '.join(SEX_CHOICES)}"
        else:
            cleaned['sex'] = sex

    if errors:
        raise PatientValidationError('Invalid patient data', errors)
    return cleaned


def _validate_images(medical_image, patient_image):
    errors = {}
    for name, file in (('medical_image', medical_image), ('patient_image', patient_image)):
        if file is None:
            continue
        error = cloudinary_manager.validate_image(file)
        if error:
            errors[name] = error
    if errors:
        raise PatientValidationError('Invalid image file', errors)


# ---------------------------------------------------------------------------
# Sub-steps
# ---------------------------------------------------------------------------

def _upload_image(file, folder, doctor_id, warnings, code, title, message):
    """Upload one optional image; returns (url, public_id) or None on failure."""
    if file is None:
        return None
    result = cloudinary_manager.upload_with_retry(file, f'{folder}/{doctor_id}')
    if result['success']:
        return result['url'], result['public_id']

    logger.warning("Image upload to %s failed for doctor %s: %s", folder, doctor_id, result.get('error'))
    warnings.append(_warning(code, title, message))
    return None


def _generate_diagnosis(fields, warnings):
    result = gemini_client.generate_diagnosis_and_treatment(
        fields['symptoms'],
        fields['diagnosis_description'],
        fields['age'],
        fields['sex'],
    )
    if result.used_fallback:
        warnings.append(_warning(
            'ai_fallback_used',
            'AI Diagnosis Generation Failed',
            'Using fallback diagnosis. You can update it manually.',
        ))
    return result


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def add_patient(doctor_id, data, medical_image=None, patient_image=None) -> RecordResult:
    """Create a record: uploads, AI generation, then the only fatal step, the write."""
    fields = _clean_fields(data, partial=False)
    _validate_images(medical_image, patient_image)
    warnings = []

    medical = _upload_image(
        medical_image, MEDICAL_IMAGE_FOLDER, doctor_id, warnings,
        'medical_image_upload_failed', 'Medical Image Upload Failed',
        "We'll continue without the medical image. You can try adding it later.",
    )
    portrait = _upload_image(
        patient_image, PATIENT_IMAGE_FOLDER, doctor_id, warnings,
        'patient_image_upload_failed', 'Patient Photo Upload Failed',
        "We'll continue without the patient photo. You can try adding it later.",
    )
    ai_result = _generate_diagnosis(fields, warnings)

    now = _utcnow()
    patient = Patient(
        doctor_id=doctor_id,
        name=fields['name'],
        age=fields['age'],
        sex=fields['sex'],
        address=fields.get('address', ''),
        symptoms=fields['symptoms'],
        diagnosis_description=fields['diagnosis_description'],
        image_url=medical[0] if medical else '',
        image_public_id=medical[1] if medical else '',
        patient_image_url=portrait[0] if portrait else '',
        patient_image_public_id=portrait[1] if portrait else '',
        diagnosis=ai_result.diagnosis,
        treatment=ai_result.treatment,
        created_at=now,
        updated_at=now,
    )

    try:
        db.session.add(patient)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error adding patient for doctor %s: %s", doctor_id, e)
        raise PatientCreationError() from e

    patient_id = patient.id
    created = db.session.get(Patient, patient_id)
    if created is None:
        raise PatientCreationError()

    logger.info("Created patient %s for doctor %s (%d warnings)", patient_id, doctor_id, len(warnings))
    return RecordResult(created, warnings)


def update_patient(patient_id, doctor_id, data, medical_image=None, patient_image=None) -> RecordResult:
    """Partial update; images not resupplied keep their stored values."""
    fields = _clean_fields(data, partial=True)
    _validate_images(medical_image, patient_image)
    patient = get_patient(patient_id, doctor_id)
    warnings = []

    medical = _upload_image(
        medical_image, MEDICAL_IMAGE_FOLDER, patient.doctor_id, warnings,
        'medical_image_upload_failed', 'Medical Image Upload Failed',
        "We'll continue with the existing medical image.",
    )
    portrait = _upload_image(
        patient_image, PATIENT_IMAGE_FOLDER, patient.doctor_id, warnings,
        'patient_image_upload_failed', 'Patient Photo Upload Failed',
        "We'll continue with the existing patient photo.",
    )

    # Explicit image fields in the payload win over a fresh upload
    if medical:
        fields.setdefault('image_url', medical[0])
        fields.setdefault('image_public_id', medical[1])
    if portrait:
        fields.setdefault('patient_image_url', portrait[0])
        fields.setdefault('patient_image_public_id', portrait[1])

    for name, value in fields.items():
        setattr(patient, name, value)
    patient.updated_at = _next_timestamp(patient.updated_at)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error updating patient %s: %s", patient_id, e)
        raise PatientUpdateError() from e

    updated = db.session.get(Patient, patient_id)
    if updated is None:
        raise PatientUpdateError()

    logger.info("Updated patient %s (%s)", patient_id, ', '.join(sorted(fields)) or 'no fields')
    return RecordResult(updated, warnings)


def get_patient(patient_id, doctor_id) -> Patient:
    patient = Patient.query.filter_by(id=patient_id, doctor_id=doctor_id).first()
    if patient is None:
        logger.info("Patient %s not found for doctor %s", patient_id, doctor_id)
        raise PatientNotFoundError()
    return patient


def get_patients_by_doctor(doctor_id) -> List[Patient]:
    return (
        Patient.query
        .filter_by(doctor_id=doctor_id)
        .order_by(Patient.created_at.desc(), Patient.id.desc())
        .all()
    )


def search_patients(doctor_id, search_term) -> List[Patient]:
    """Case-insensitive substring match on name, over the doctor's full list.

    Names are encrypted at rest, so matching happens after decryption.
    """
    term = (search_term or '').strip().lower()
    patients = get_patients_by_doctor(doctor_id)
    if not term:
        return patients
    return [p for p in patients if term in (p.name or '').lower()]


def delete_patient(patient_id, doctor_id) -> None:
    """Remove the record only; hosted images follow Cloudinary's retention policy."""
    patient = get_patient(patient_id, doctor_id)
    try:
        db.session.delete(patient)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error deleting patient %s: %s", patient_id, e)
        raise RecordServiceError('Failed to delete patient record') from e
    logger.info("Deleted patient %s for doctor %s", patient_id, doctor_id)


def get_prescriptions(doctor_id, search_term='') -> List[Patient]:
    """Records that carry both a diagnosis and a treatment plan."""
    return [
        p for p in search_patients(doctor_id, search_term)
        if p.diagnosis and p.treatment
    ]


def get_dashboard_summary(doctor_id, today=None) -> dict:
    patients = get_patients_by_doctor(doctor_id)
    today = today or _utcnow().date()
    patients_today = [p for p in patients if p.created_at and p.created_at.date() == today]
    return {
        'total_patients': len(patients),
        'patients_today': len(patients_today),
        'recent_patients': patients[:RECENT_PATIENTS_LIMIT],
    }
