import enum
import secrets
from datetime import datetime
from models.db import db


class Role(str, enum.Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"
    LAB_TECHNICIAN = "lab_technician"
    PHARMACIST = "pharmacist"
    RADIOLOGIST = "radiologist"
    ACCOUNTANT = "accountant"
    HR_MANAGER = "hr_manager"
    HOUSEKEEPING = "housekeeping"
    SECURITY = "security"

    @classmethod
    def parse(cls, value):
        """Return the Role for a raw string, or None when it is not a known role."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def username_for(email: str) -> str:
    """Derive a unique login name from the email local part."""
    base = email.split("@")[0][:30]
    return f"{base}_{secrets.token_hex(4)}"


class Account(db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(Role, name="account_role", values_callable=lambda e: [r.value for r in e]),
        nullable=False,
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # 2FA: secret is stored at enrollment start, enabled only after verification
    two_factor_enabled = db.Column(db.Boolean, default=False, nullable=False)
    two_factor_secret = db.Column(db.String(64), nullable=True)

    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    locked_until = db.Column(db.DateTime, nullable=True)
    last_login = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    staff = db.relationship("StaffProfile", back_populates="account", uselist=False)

    def to_public_dict(self) -> dict:
        # never serialize password_hash or two_factor_secret
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "isActive": self.is_active,
            "twoFactorEnabled": self.two_factor_enabled,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "staff": self.staff.to_dict() if self.staff else None,
        }
