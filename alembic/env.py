import asyncio
from logging.config import fileConfig

from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

from cookie_consent.config import settings
from cookie_consent.database import Base
from cookie_consent.models import ConsentRecord  # noqa: F401


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """An explicit ``-x url=...`` wins over DATABASE_URL."""
    return context.get_x_argument(as_dictionary=True).get("url", settings.database_url)


def configure_options(url: str) -> dict:
    # SQLite can only alter tables by copying them
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def do_run_migrations(sync_connection, url: str) -> None:
    context.configure(connection=sync_connection, **configure_options(url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations against a live database through the async driver."""
    url = get_url()
    connectable = create_async_engine(url)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations, url)

    await connectable.dispose()


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
