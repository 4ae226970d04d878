from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from elearning.core.database import Base


class UserRole:
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

    ALL = (STUDENT, INSTRUCTOR, ADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Authentication
    email = Column(String(255), unique=True, index=True, nullable=False)  # lowercase
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.STUDENT, nullable=False, index=True)

    # Profile
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    avatar = Column(Text, nullable=True)
    bio = Column(String(500), nullable=True)
    phone = Column(String(30), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    address = Column(JSON, nullable=True)  # street, city, state, zip_code, country
    social_links = Column(JSON, nullable=True)  # website, linkedin, twitter, github

    # Account status
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
