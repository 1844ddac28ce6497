"""Patient appointment model definitions."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, Text, Time, false
from clinic_api.database import Base


CLINICAL_FIELDS = (
    'initial_complaints',
    'medical_history',
    'family_history',
    'social_history',
    'on_medications',
    'vitals',
    'allergies',
    'surgeries',
    'location',
    'professional',
)


class Appointment(Base):
    """Represents a patient visit, optionally linked to a doctor account."""
    __tablename__ = "patient"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    phone_number = Column(Text)
    address = Column(Text)
    age = Column(Integer)
    gender = Column(Text)
    disease = Column(Text)

    appointment_date = Column(Date)
    appointment_time = Column(Time)
    doctor_id = Column(Text, ForeignKey("admin.doctor_id", ondelete="SET NULL"))
    is_active = Column(Boolean, nullable=False, default=False, server_default=false())

    initial_complaints = Column(Text)
    medical_history = Column(Text)
    family_history = Column(Text)
    social_history = Column(Text)
    on_medications = Column(Text)
    vitals = Column(Text)
    allergies = Column(Text)
    surgeries = Column(Text)
    location = Column(Text)
    professional = Column(Text)
