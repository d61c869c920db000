# hrms_backend/models/__init__.py
import importlib

MODEL_MODULES = (
    "hrms_backend.models.master",
    "hrms_backend.models.employee",
    "hrms_backend.models.attendance",
    "hrms_backend.models.leave",
    "hrms_backend.models.payroll",
)


def load_all():
    """Import every model module so db.metadata knows all tables. Returns the table names."""
    for name in MODEL_MODULES:
        importlib.import_module(name)

    from hrms_backend.extensions import db
    return sorted(db.metadata.tables)
