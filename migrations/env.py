# migrations/env.py
from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from flask import current_app, has_app_context

config = context.config
if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except KeyError:
        # alembic.ini without full logging sections
        pass

log = logging.getLogger("alembic.env")


def _flask_app():
    """`flask db ...` runs inside an app context; bare `alembic` falls back to the wsgi app."""
    if has_app_context():
        return current_app._get_current_object()
    from hrms_backend.wsgi import app
    return app


flask_app = _flask_app()

with flask_app.app_context():
    from hrms_backend.extensions import db
    from hrms_backend.models import load_all

    tables = load_all()
    engine = db.engine
    db_url = engine.url.render_as_string(hide_password=False)

config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
log.info("migrating %d tables on %s", len(tables), engine.url.render_as_string(hide_password=True))

target_metadata = db.metadata
configure_kwargs = {
    "target_metadata": target_metadata,
    "compare_type": True,
    # SQLite cannot ALTER most constraints in place
    "render_as_batch": engine.dialect.name == "sqlite",
}


def process_revision_directives(context_, revision, directives):
    """Skip writing an autogenerated revision that has no operations."""
    if getattr(config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            log.info("No changes in schema detected.")


def run_migrations_offline() -> None:
    context.configure(url=db_url, literal_binds=True, **configure_kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            process_revision_directives=process_revision_directives,
            **configure_kwargs,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
