"""Doctor/admin account model definitions."""

from sqlalchemy import Boolean, Column, Integer, Text, true
from clinic_api.database import Base


class Account(Base):
    """Represents a doctor or admin credential record."""
    __tablename__ = "admin"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, unique=True, nullable=False)
    hospital = Column(Text)
    degree = Column(Text)
    password = Column(Text, nullable=False)  # plaintext, compared byte-for-byte
    doctor_id = Column(Text, unique=True, nullable=False)
    is_first_login = Column(Boolean, nullable=False, default=True, server_default=true())
