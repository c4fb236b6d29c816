"""Alembic environment configuration for GMBS Portal."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from gmbs_portal.common.models import Base

# Import all models so they register with Base.metadata
import gmbs_portal.tenants.models  # noqa: F401
import gmbs_portal.tokens.models  # noqa: F401
import gmbs_portal.submissions.models  # noqa: F401
import gmbs_portal.portal.models  # noqa: F401
import gmbs_portal.reports.models  # noqa: F401
import gmbs_portal.audit.models  # noqa: F401

config = context.config

# Allow CLI override: alembic -x sqlalchemy.url=... upgrade head
cmd_url = context.get_x_argument(as_dictionary=True).get("sqlalchemy.url")
if cmd_url:
    config.set_main_option("sqlalchemy.url", cmd_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=url.startswith("sqlite") if url else False,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
