import json

import pytest

from models.account import Account, Role
from models.audit_log import AuditLog
from models.staff import StaffProfile
from security.rbac import is_permitted
from tests.conftest import bearer, reload


@pytest.mark.parametrize("role", list(Role))
def test_only_listed_roles_are_permitted(role):
    assert is_permitted(role, [role]) is True
    others = [r for r in Role if r is not role]
    assert is_permitted(role, others) is False


def test_admin_gets_no_implicit_bypass():
    assert is_permitted(Role.ADMIN, [Role.DOCTOR, Role.NURSE]) is False


def test_unknown_role_is_never_permitted():
    assert is_permitted("chief_wizard", list(Role)) is False
    assert is_permitted(None, [Role.ADMIN]) is False


def test_string_roles_are_accepted():
    assert is_permitted("pharmacist", ["pharmacist", "doctor"]) is True


def test_nurse_reading_audit_logs_is_forbidden_and_recorded(client, make_account, login_token):
    nurse = make_account(email="nurse@h.com", role=Role.NURSE)

    resp = client.get("/admin/audit-logs", headers=bearer(login_token("nurse@h.com")))

    assert resp.status_code == 403
    assert resp.get_json() == {"success": False, "message": "Insufficient permissions"}

    row = AuditLog.query.filter_by(action="UNAUTHORIZED_ACCESS_ATTEMPT").one()
    assert row.user_id == nurse.id
    meta = json.loads(row.metadata_json)
    assert meta["user_role"] == "nurse"
    assert meta["required_roles"] == ["admin"]
    assert meta["endpoint"] == "/admin/audit-logs"
    assert meta["method"] == "GET"


def test_admin_reads_audit_logs_with_filters(client, make_account, login_token):
    admin = make_account(email="admin@h.com", role=Role.ADMIN)
    token = login_token("admin@h.com")

    resp = client.get("/admin/audit-logs?action=LOGIN_SUCCESS", headers=bearer(token))

    assert resp.status_code == 200
    rows = resp.get_json()["data"]
    assert len(rows) == 1
    assert rows[0]["user_id"] == admin.id
    assert rows[0]["ip"] == "10.9.9.9"


# ---- admin registration ----------------------------------------------------

def _register_body(**overrides):
    body = {
        "email": "New.Nurse@h.com",
        "password": "Fresh!Pass9",
        "role": "nurse",
        "staff_data": {
            "first_name": "Ada",
            "last_name": "Okafor",
            "employee_id": "EMP-77",
            "department": "Cardiology",
        },
    }
    body.update(overrides)
    return body


@pytest.fixture
def admin_token(make_account, login_token):
    make_account(email="admin@h.com", role=Role.ADMIN)
    return login_token("admin@h.com")


def test_admin_registers_staff_account(client, admin_token):
    resp = client.post("/auth/register", json=_register_body(), headers=bearer(admin_token))

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["email"] == "new.nurse@h.com"
    assert data["role"] == "nurse"
    assert data["employee_id"] == "EMP-77"

    account = Account.query.filter_by(email="new.nurse@h.com").one()
    assert account.password_hash != "Fresh!Pass9"
    assert account.two_factor_enabled is False
    assert StaffProfile.query.filter_by(account_id=account.id).one().department == "Cardiology"
    assert AuditLog.query.filter_by(action="REGISTER_SUCCESS").count() == 1


def test_register_duplicate_email_conflicts(client, admin_token):
    client.post("/auth/register", json=_register_body(), headers=bearer(admin_token))

    body = _register_body(staff_data={"first_name": "Bo", "last_name": "Li", "employee_id": "EMP-78"})
    resp = client.post("/auth/register", json=body, headers=bearer(admin_token))

    assert resp.status_code == 409
    assert resp.get_json()["message"] == "User with this email already exists"


def test_register_duplicate_employee_id_conflicts(client, admin_token):
    client.post("/auth/register", json=_register_body(), headers=bearer(admin_token))

    resp = client.post("/auth/register", json=_register_body(email="other@h.com"), headers=bearer(admin_token))

    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Employee ID already exists"


def test_register_validation_errors(client, admin_token):
    body = {"email": "nope", "password": "short", "role": "janitor", "staff_data": {}}

    resp = client.post("/auth/register", json=body, headers=bearer(admin_token))

    assert resp.status_code == 400
    fields = {e["field"] for e in resp.get_json()["errors"]}
    assert {"email", "password", "role", "first_name", "last_name", "employee_id"} <= fields


def test_register_is_admin_only(client, make_account, login_token):
    make_account(email="doc@h.com", role=Role.DOCTOR)

    resp = client.post("/auth/register", json=_register_body(), headers=bearer(login_token("doc@h.com")))

    assert resp.status_code == 403
    assert Account.query.filter_by(email="new.nurse@h.com").first() is None


# ---- account status --------------------------------------------------------

def test_admin_deactivates_and_reactivates_account(client, make_account, admin_token):
    doctor = make_account(email="doc@h.com")

    resp = client.patch(f"/admin/accounts/{doctor.id}/status", json={"isActive": False}, headers=bearer(admin_token))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["isActive"] is False
    assert reload(doctor).is_active is False

    resp = client.patch(f"/admin/accounts/{doctor.id}/status", json={"isActive": True}, headers=bearer(admin_token))
    assert resp.status_code == 200
    assert reload(doctor).is_active is True
    assert AuditLog.query.filter_by(action="ACCOUNT_STATUS_CHANGED").count() == 2


def test_account_status_errors(client, make_account, admin_token):
    admin = Account.query.filter_by(email="admin@h.com").one()

    assert client.patch("/admin/accounts/9999/status", json={"isActive": False},
                        headers=bearer(admin_token)).status_code == 404
    assert client.patch(f"/admin/accounts/{admin.id}/status", json={"isActive": "no"},
                        headers=bearer(admin_token)).status_code == 400
    assert client.patch(f"/admin/accounts/{admin.id}/status", json={"isActive": False},
                        headers=bearer(admin_token)).status_code == 400


def test_admin_lists_accounts(client, make_account, admin_token):
    make_account(email="doc@h.com")

    resp = client.get("/admin/accounts", headers=bearer(admin_token))

    assert resp.status_code == 200
    assert [a["email"] for a in resp.get_json()["data"]] == ["admin@h.com", "doc@h.com"]


@pytest.mark.parametrize("field, value", [
    ("department", {"x": 1}),
    ("department", "D" * 51),
    ("phone", 5551234),
    ("phone", "0" * 16),
])
def test_register_rejects_bad_optional_staff_fields(client, admin_token, field, value):
    body = _register_body()
    body["staff_data"][field] = value

    resp = client.post("/auth/register", json=body, headers=bearer(admin_token))

    assert resp.status_code == 400
    assert [e["field"] for e in resp.get_json()["errors"]] == [field]
    assert Account.query.filter_by(email="new.nurse@h.com").first() is None


def test_register_same_local_part_on_two_domains(client, admin_token):
    first = client.post("/auth/register", json=_register_body(email="sam@ward-a.org"), headers=bearer(admin_token))
    body = _register_body(
        email="sam@ward-b.org",
        staff_data={"first_name": "Sam", "last_name": "Lee", "employee_id": "EMP-90"},
    )
    second = client.post("/auth/register", json=body, headers=bearer(admin_token))

    assert first.status_code == second.status_code == 201
    usernames = {a.username for a in Account.query.filter(Account.email.like("sam@%"))}
    assert len(usernames) == 2
