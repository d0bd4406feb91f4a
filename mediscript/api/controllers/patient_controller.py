from flask import request, jsonify, g, current_app
from mediscript.services import record_service
from mediscript.services.record_service import (
    PatientValidationError, PatientNotFoundError, RecordServiceError
)
from mediscript.utils.treatment_formatter import formatted_treatment

IMAGE_FIELD_NAMES = ('medical_image', 'patient_image')

def _read_payload():
    """Patient fields plus optional image files, from JSON or multipart form."""
    if request.is_json:
        return request.get_json(silent=True) or {}, {}

    data = request.form.to_dict()
    files = {}
    for key in IMAGE_FIELD_NAMES:
        file = request.files.get(key)
        if file is not None and file.filename:
            files[key] = file
    return data, files

def _validation_error(e):
    return jsonify({'error': str(e), 'fields': e.fields}), 400

def create_patient():
    """Creates a patient record with AI diagnosis and optional images."""
    data, files = _read_payload()
    try:
        result = record_service.add_patient(
            g.current_user.id, data,
            medical_image=files.get('medical_image'),
            patient_image=files.get('patient_image')
        )
    except PatientValidationError as e:
        return _validation_error(e)
    except RecordServiceError as e:
        return jsonify({'error': str(e)}), 500

    return jsonify({'message': 'Patient created successfully', **result.to_dict()}), 201

def update_patient(patient_id):
    data, files = _read_payload()
    try:
        result = record_service.update_patient(
            patient_id, g.current_user.id, data,
            medical_image=files.get('medical_image'),
            patient_image=files.get('patient_image')
        )
    except PatientValidationError as e:
        return _validation_error(e)
    except PatientNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except RecordServiceError as e:
        return jsonify({'error': str(e)}), 500

    return jsonify({'message': 'Patient updated successfully', **result.to_dict()}), 200

def get_patients():
    """Lists the doctor's patients, newest first; `q` filters by name."""
    term = request.args.get('q', '')
    if term:
        patients = record_service.search_patients(g.current_user.id, term)
    else:
        patients = record_service.get_patients_by_doctor(g.current_user.id)
    return jsonify({'patients': [p.to_dict() for p in patients]}), 200

def search_patients():
    term = request.args.get('q', '')
    patients = record_service.search_patients(g.current_user.id, term)
    return jsonify({'patients': [p.to_dict() for p in patients], 'query': term}), 200

def get_patient(patient_id):
    try:
        patient = record_service.get_patient(patient_id, g.current_user.id)
    except PatientNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({'patient': patient.to_dict()}), 200

def get_patient_treatment(patient_id):
    """Treatment plan as display blocks (paragraphs, list items, bold spans)."""
    try:
        patient = record_service.get_patient(patient_id, g.current_user.id)
    except PatientNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({
        'patient_id': patient.id,
        'diagnosis': patient.diagnosis or '',
        'treatment': formatted_treatment(patient.treatment or '')
    }), 200

def delete_patient(patient_id):
    try:
        record_service.delete_patient(patient_id, g.current_user.id)
    except PatientNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except RecordServiceError as e:
        current_app.logger.error(f"Delete failed for patient {patient_id}: {str(e)}")
        return jsonify({'error': str(e)}), 500
    return jsonify({'message': 'Patient record deleted'}), 200

def get_prescriptions():
    term = request.args.get('q', '')
    patients = record_service.get_prescriptions(g.current_user.id, term)
    return jsonify({'prescriptions': [p.to_dict() for p in patients]}), 200

def get_dashboard():
    summary = record_service.get_dashboard_summary(g.current_user.id)
    return jsonify({
        'total_patients': summary['total_patients'],
        'patients_today': summary['patients_today'],
        'recent_patients': [p.to_dict() for p in summary['recent_patients']]
    }), 200
