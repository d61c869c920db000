from flask import Blueprint, request
from flask_jwt_extended import create_access_token

from hrms_backend.common.auth import requires_caps, current_principal
from hrms_backend.common.http import ok, fail
from hrms_backend.extensions import db
from hrms_backend.models.employee import Employee

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


def _user_payload(emp: Employee, principal=None):
    out = {
        "id": emp.id,
        "code": emp.code,
        "email": emp.email,
        "full_name": emp.full_name,
        "role": emp.role_name,
        "department": emp.department.name if emp.department else None,
    }
    if principal is not None:
        out["capabilities"] = sorted(principal.capabilities)
        out["scope"] = principal.scope
    return out


@bp.post("/login")
def login():
    data = request.get_json(silent=True, force=True)
    if not isinstance(data, dict):
        data = {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return fail("email and password are required", status=422)

    emp = Employee.query.filter_by(email=email).first()
    if not emp or not emp.is_active or not emp.check_password(password):
        return fail("Invalid credentials", status=401)

    claims = {"role": emp.role_name, "email": emp.email, "name": emp.full_name}
    access = create_access_token(identity=str(emp.id), additional_claims=claims)
    return ok({"access": access, "user": _user_payload(emp)})


@bp.get("/me")
@requires_caps()
def me():
    p = current_principal()
    emp = db.session.get(Employee, p.employee_id)
    return ok(_user_payload(emp, p))
