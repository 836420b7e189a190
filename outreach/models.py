from sqlalchemy import Column, Integer, String, Date, Float, Text, ForeignKey, func
from sqlalchemy.orm import relationship
from sqlalchemy.sql.sqltypes import DateTime
from .database import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(120), nullable=True)
    role = Column(String(20), nullable=False, default="user")  # admin, user, doctor, nurse
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Entry(Base):
    __tablename__ = "entries"
    id = Column(Integer, primary_key=True, index=True)

    # demographic group
    first_name = Column(String(120), nullable=False)
    middle_name = Column(String(120), nullable=False)
    surname = Column(String(120), nullable=False)
    gender = Column(String(10), nullable=False, index=True)
    marital_status = Column(String(20), nullable=False)
    religion = Column(String(120), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    phone_number = Column(String(40), nullable=False)
    occupation = Column(String(120), nullable=False)

    # health group
    bp = Column(String(20), nullable=True)
    temp = Column(Float, nullable=True)
    weight = Column(Float, nullable=True)

    # medical group
    diagnosis = Column(Text, nullable=True)
    treatment = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    demographic_created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    health_created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    medical_created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    created_by = relationship("User", foreign_keys=[created_by_id])
    demographic_created_by = relationship("User", foreign_keys=[demographic_created_by_id])
    health_created_by = relationship("User", foreign_keys=[health_created_by_id])
    medical_created_by = relationship("User", foreign_keys=[medical_created_by_id])


# Columns holding a user reference; cleared when that user is deleted.
USER_REFERENCE_COLUMNS = (
    "created_by_id",
    "demographic_created_by_id",
    "health_created_by_id",
    "medical_created_by_id",
)
