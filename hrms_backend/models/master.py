from datetime import datetime

from hrms_backend.extensions import db


ROLE_ADMIN = "ADMIN"
ROLE_HR = "HR"
ROLE_DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
ROLE_TEAM_LEAD = "TEAM_LEAD"
ROLE_TECHNICAL_EXPERT = "TECHNICAL_EXPERT"

ROLE_NAMES = (
    ROLE_ADMIN,
    ROLE_HR,
    ROLE_DEPARTMENT_HEAD,
    ROLE_TEAM_LEAD,
    ROLE_TECHNICAL_EXPERT,
)


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)   # e.g. "ADMIN", "HR"
    level = db.Column(db.SmallInteger, nullable=False, default=5)  # 1 = highest
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r}>"


class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    attendance_settings = db.relationship(
        "AttendanceSettings",
        back_populates="department",
        uselist=False,
        lazy="joined",
    )


class AttendanceSettings(db.Model):
    """
    Expected working window for a department.

    Only one row per department (unique department_id); the evaluator reads
    Department.attendance_settings directly.
    """

    __tablename__ = "attendance_settings"

    id = db.Column(db.Integer, primary_key=True)
    department_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    check_in_time = db.Column(db.Time, nullable=False)
    check_out_time = db.Column(db.Time, nullable=False)
    grace_period_mins = db.Column(db.Integer, nullable=False, default=15)
    standard_work_hours = db.Column(db.Numeric(4, 2), nullable=False, default=8)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    department = db.relationship("Department", back_populates="attendance_settings")

    def to_dict(self):
        return {
            "id": self.id,
            "department_id": self.department_id,
            "check_in_time": self.check_in_time.strftime("%H:%M") if self.check_in_time else None,
            "check_out_time": self.check_out_time.strftime("%H:%M") if self.check_out_time else None,
            "grace_period_mins": self.grace_period_mins,
            "standard_work_hours": float(self.standard_work_hours or 0),
        }
