import uuid
from datetime import datetime
from mediscript.extensions import db
from mediscript.utils.cloudinary_util import cloudinary_manager
from mediscript.utils.encryption_util import EncryptedText

SEX_CHOICES = ('Male', 'Female', 'Other')


def generate_patient_id():
    return uuid.uuid4().hex


class Patient(db.Model):
    """One consultation: demographics, the doctor's note, AI output and images."""
    __tablename__ = 'patients'

    id = db.Column(db.String(32), primary_key=True, default=generate_patient_id)

    # Doctor (User) who created this record; never reassigned
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # --- Encrypted PHI ---
    name = db.Column(EncryptedText, nullable=False)
    address = db.Column(EncryptedText)
    symptoms = db.Column(EncryptedText, nullable=False)
    diagnosis_description = db.Column(EncryptedText, nullable=False)

    # --- Non-encrypted fields ---
    age = db.Column(db.Integer, nullable=False)
    sex = db.Column(db.String(10), nullable=False)
    diagnosis = db.Column(db.Text, default='')
    treatment = db.Column(db.Text, default='')

    # Medical condition image (Cloudinary)
    image_url = db.Column(db.String(1024), default='')
    image_public_id = db.Column(db.String(512), default='')
    # Patient portrait (Cloudinary)
    patient_image_url = db.Column(db.String(1024), default='')
    patient_image_public_id = db.Column(db.String(512), default='')

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    doctor = db.relationship('User', back_populates='patients')

    def to_dict(self):
        """Serializes the record for API responses, with derived image URLs."""
        return {
            'id': self.id,
            'doctor_id': self.doctor_id,
            'name': self.name,
            'age': self.age,
            'sex': self.sex,
            'address': self.address or '',
            'symptoms': self.symptoms,
            'diagnosis_description': self.diagnosis_description,
            'diagnosis': self.diagnosis or '',
            'treatment': self.treatment or '',
            'image_url': self.image_url or '',
            'image_public_id': self.image_public_id or '',
            'image_optimized_url': cloudinary_manager.get_optimized_image_url(self.image_public_id),
            'patient_image_url': self.patient_image_url or '',
            'patient_image_public_id': self.patient_image_public_id or '',
            'patient_image_thumbnail_url': cloudinary_manager.get_thumbnail_url(self.patient_image_public_id),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
