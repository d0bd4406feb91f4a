# /mediscript/api/routes.py

from flask_jwt_extended import jwt_required
from . import api_bp
from mediscript.extensions import limiter
from mediscript.utils.decorators import audit_log, doctor_required
from .controllers import auth_controller, doctor_controller, patient_controller


# --- Authentication Endpoints ---
@api_bp.route('/auth/register', methods=['POST'])
@limiter.limit("5 per hour")
@audit_log("USER_REGISTRATION", "users")
def register():
    return auth_controller.register_user()

@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit("10 per minute")
@audit_log("USER_LOGIN", "authentication")
def login():
    return auth_controller.login_user()

@api_bp.route('/auth/logout', methods=['POST'])
@jwt_required()
@audit_log("USER_LOGOUT", "authentication")
def logout():
    return auth_controller.logout_user()

@api_bp.route('/auth/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    return auth_controller.refresh_token()

@api_bp.route('/auth/change-password', methods=['POST'])
@jwt_required()
@audit_log("PASSWORD_CHANGE", "authentication")
def change_password():
    return auth_controller.change_user_password()


# --- Doctor Profile Endpoints ---
@api_bp.route('/doctors/profile', methods=['GET'])
@jwt_required()
@audit_log("VIEW_DOCTOR_PROFILE", "doctors")
@doctor_required
def get_doctor_profile():
    return doctor_controller.get_doctor_profile()

@api_bp.route('/doctors/profile', methods=['PUT'])
@jwt_required()
@audit_log("UPDATE_DOCTOR_PROFILE", "doctors")
@doctor_required
def update_doctor_profile():
    return doctor_controller.update_doctor_profile()


# --- Patient Record Endpoints ---
@api_bp.route('/patients', methods=['POST'])
@jwt_required()
@audit_log("CREATE_PATIENT", "patients")
@doctor_required
def create_patient_route():
    return patient_controller.create_patient()

@api_bp.route('/patients', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ALL_PATIENTS", "patients")
@doctor_required
def get_patients_route():
    return patient_controller.get_patients()

@api_bp.route('/patients/search', methods=['GET'])
@jwt_required()
@audit_log("SEARCH_PATIENTS", "patients")
@doctor_required
def search_patients_route():
    return patient_controller.search_patients()

@api_bp.route('/patients/<string:patient_id>', methods=['GET'])
@jwt_required()
@audit_log("VIEW_PATIENT_DETAIL", "patients")
@doctor_required
def get_patient_route(patient_id):
    return patient_controller.get_patient(patient_id)

@api_bp.route('/patients/<string:patient_id>', methods=['PUT'])
@jwt_required()
@audit_log("UPDATE_PATIENT", "patients")
@doctor_required
def update_patient_route(patient_id):
    return patient_controller.update_patient(patient_id)

@api_bp.route('/patients/<string:patient_id>', methods=['DELETE'])
@jwt_required()
@audit_log("DELETE_PATIENT", "patients")
@doctor_required
def delete_patient_route(patient_id):
    return patient_controller.delete_patient(patient_id)

@api_bp.route('/patients/<string:patient_id>/treatment', methods=['GET'])
@jwt_required()
@audit_log("VIEW_PATIENT_TREATMENT", "patients")
@doctor_required
def get_patient_treatment_route(patient_id):
    return patient_controller.get_patient_treatment(patient_id)


# --- Prescriptions & Dashboard ---
@api_bp.route('/prescriptions', methods=['GET'])
@jwt_required()
@audit_log("VIEW_PRESCRIPTIONS", "patients")
@doctor_required
def get_prescriptions_route():
    return patient_controller.get_prescriptions()

@api_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@audit_log("VIEW_DASHBOARD", "patients")
@doctor_required
def get_dashboard_route():
    return patient_controller.get_dashboard()
