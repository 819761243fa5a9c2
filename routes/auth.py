from flask import Blueprint, g

from models import db
from models.account import Account, Role, username_for
from models.staff import StaffProfile
from security import guard, totp
from security.password import hash_password, verify_password
from security.password_policy import policy_errors
from security.rbac import require_roles
from security.tokens import revoke_token
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import AuthenticationError, ConflictError, ValidationError
from utils.responses import success
from utils.validators import (
    check_length,
    check_optional_length,
    field_error,
    is_valid_email,
    json_body,
    normalize_email,
    raise_if_errors,
)


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/login")
def login():
    data = json_body()
    result = guard.login(
        data.get("email"),
        data.get("password"),
        data.get("twoFactorToken"),
    )

    if result.two_factor_required:
        return success(
            data={"twoFactorRequired": True},
            message="Two-factor authentication required",
        )

    return success(
        data={"token": result.token, "user": result.account.to_public_dict()},
        message="Login successful",
    )


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_token(g.token)
    log_event("LOGOUT", user_id=g.account.id)
    return success(message="Logged out successfully")


@auth_bp.get("/me")
@login_required
def me():
    return success(data=g.account.to_public_dict())


@auth_bp.post("/register")
@login_required
@require_roles(Role.ADMIN)
def register():
    data = json_body()
    email = normalize_email(data.get("email"))
    password = data.get("password")
    role = Role.parse(data.get("role"))
    staff_data = data.get("staff_data") if isinstance(data.get("staff_data"), dict) else {}

    errors = []
    if not is_valid_email(email):
        errors.append(field_error("email", "Valid email required"))
    errors.extend(policy_errors(password))
    if role is None:
        errors.append(field_error("role", "Valid role required"))
    check_length(staff_data, "first_name", 2, 50, "First name", errors)
    check_length(staff_data, "last_name", 2, 50, "Last name", errors)
    check_length(staff_data, "employee_id", 3, 20, "Employee ID", errors)
    check_optional_length(staff_data, "department", 50, "Department", errors)
    check_optional_length(staff_data, "phone", 15, "Phone", errors)
    raise_if_errors(errors)

    employee_id = staff_data["employee_id"].strip()
    if Account.query.filter_by(email=email).first():
        raise ConflictError("User with this email already exists")
    if StaffProfile.query.filter_by(employee_id=employee_id).first():
        raise ConflictError("Employee ID already exists")

    account = Account(
        email=email,
        username=username_for(email),
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(account)
    db.session.flush()

    staff = StaffProfile(
        account_id=account.id,
        employee_id=employee_id,
        first_name=staff_data["first_name"].strip(),
        last_name=staff_data["last_name"].strip(),
        department=(staff_data.get("department") or "").strip() or None,
        phone=(staff_data.get("phone") or "").strip() or None,
    )
    db.session.add(staff)
    db.session.commit()

    log_event(
        "REGISTER_SUCCESS",
        user_id=g.account.id,
        entity="account",
        entity_id=account.id,
        metadata={"role": role.value, "employee_id": employee_id},
    )
    return success(
        data={
            "user_id": account.id,
            "email": account.email,
            "role": account.role.value,
            "staff_id": staff.id,
            "employee_id": staff.employee_id,
        },
        message="User registered successfully",
        status=201,
    )


@auth_bp.post("/change-password")
@login_required
def change_password():
    data = json_body()
    current_password = data.get("currentPassword")
    new_password = data.get("newPassword")

    errors = []
    if not isinstance(current_password, str) or not current_password:
        errors.append(field_error("currentPassword", "Current password required"))
    errors.extend(policy_errors(new_password, field="newPassword"))
    raise_if_errors(errors)

    account = g.account
    if not verify_password(current_password, account.password_hash):
        log_event("PASSWORD_CHANGE_FAIL", user_id=account.id, metadata={"reason": "bad_current_password"})
        raise AuthenticationError("Current password is incorrect")

    if verify_password(new_password, account.password_hash):
        raise ValidationError(errors=[field_error("newPassword", "New password must differ from the current one")])

    account.password_hash = hash_password(new_password)
    db.session.commit()

    log_event("PASSWORD_CHANGED", user_id=account.id)
    return success(message="Password changed successfully")


@auth_bp.post("/enable-2fa")
@login_required
def enable_2fa():
    account = g.account
    if account.two_factor_enabled:
        raise ValidationError("Two-factor authentication is already enabled")

    # not enabled until verify-2fa-setup proves the authenticator works
    secret = totp.generate_secret()
    account.two_factor_secret = secret
    db.session.commit()

    uri = totp.provisioning_uri(secret, account.email)
    log_event("2FA_SETUP_STARTED", user_id=account.id)
    return success(
        data={
            "secret": secret,
            "manualEntryKey": secret,
            "otpauthUrl": uri,
            "qrCode": totp.qr_code_data_url(uri),
        },
        message="Scan QR code with your authenticator app and verify to enable 2FA",
    )


@auth_bp.post("/verify-2fa-setup")
@login_required
def verify_2fa_setup():
    code = json_body().get("token")
    if not totp.is_well_formed(code):
        raise ValidationError(errors=[field_error("token", "6-digit token required")])

    account = g.account
    if account.two_factor_enabled:
        raise ValidationError("Two-factor authentication is already enabled")
    if not account.two_factor_secret:
        raise ValidationError("Two-factor authentication setup not initiated")

    if not totp.verify_code(code, account.two_factor_secret):
        log_event("2FA_SETUP_FAIL", user_id=account.id)
        raise AuthenticationError("Invalid verification code")

    account.two_factor_enabled = True
    db.session.commit()

    log_event("2FA_ENABLED", user_id=account.id)
    return success(message="Two-factor authentication enabled successfully")


@auth_bp.post("/disable-2fa")
@login_required
def disable_2fa():
    password = json_body().get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError(errors=[field_error("password", "Password required to disable 2FA")])

    account = g.account
    if not verify_password(password, account.password_hash):
        log_event("2FA_DISABLE_FAIL", user_id=account.id)
        raise AuthenticationError("Invalid password")

    account.two_factor_enabled = False
    account.two_factor_secret = None
    db.session.commit()

    log_event("2FA_DISABLED", user_id=account.id)
    return success(message="Two-factor authentication disabled successfully")
