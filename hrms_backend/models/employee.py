from datetime import datetime

from werkzeug.security import generate_password_hash, check_password_hash

from hrms_backend.extensions import db


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    role_id       = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False)
    manager_id    = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    code  = db.Column(db.String(32), unique=True, nullable=False)   # employee code, e.g. EMP001
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(160), nullable=False)
    phone     = db.Column(db.String(20), nullable=True)
    address   = db.Column(db.String(255), nullable=True)
    date_of_joining = db.Column(db.Date, nullable=True)

    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_dept_id", "department_id"),
        db.Index("ix_emp_manager_id", "manager_id"),
    )

    role       = db.relationship("Role", lazy="joined")
    department = db.relationship("Department", lazy="joined")
    manager    = db.relationship("Employee", remote_side=[id], lazy="joined")

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    @property
    def role_name(self):
        return self.role.name if self.role else None

    def brief(self):
        return {"id": self.id, "code": self.code, "full_name": self.full_name}

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "address": self.address,
            "date_of_joining": self.date_of_joining.isoformat() if self.date_of_joining else None,
            "is_active": self.is_active,
            "role": {"id": self.role.id, "name": self.role.name, "level": self.role.level} if self.role else None,
            "department": {"id": self.department.id, "name": self.department.name} if self.department else None,
            "manager": self.manager.brief() if self.manager else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
