"""
Tests for the archive command line interface

The command runs its own event loop, so these tests are synchronous and
use a file-backed SQLite database that every loop can open.
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import cookie_consent.database as database_module
from cookie_consent import cli as cli_module
from cookie_consent.cli import cli
from cookie_consent.database import Base
from cookie_consent.models.consent_record import ConsentRecord
from utils.mock_utils import create_test_consent_record

CONSENT_DATES = [datetime(2022, 1, 1), datetime(2023, 6, 15), datetime(2024, 3, 1)]


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    """Seeded SQLite file database patched in as the application's session maker"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'consent.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            for consent_date in CONSENT_DATES:
                await create_test_consent_record(session, consent_date)

    asyncio.run(seed())
    monkeypatch.setattr(database_module, "AsyncSessionLocal", factory)
    monkeypatch.setattr(cli_module, "setup_structured_logging", lambda *args, **kwargs: None)
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


def count_records(factory) -> int:
    async def _count():
        async with factory() as session:
            result = await session.execute(select(func.count()).select_from(ConsentRecord))
            return result.scalar_one()

    return asyncio.run(_count())


def exported_files(project_dir):
    directory = project_dir / "var" / "cookie-consent"
    return sorted(p.name for p in directory.iterdir()) if directory.exists() else []


class TestArchiveCommand:
    """Test the archive command end to end"""

    def test_archive_with_options(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["archive", "--date", "2023-01-01", "--output-format", "csv", "--project-dir", str(project_dir)],
        )

        assert result.exit_code == 0, result.output
        assert "Records archived and deleted successfully." in result.output
        files = exported_files(project_dir)
        assert len(files) == 1
        assert files[0].startswith("2022-01-01-2022-01-01_exported_")
        assert files[0].endswith(".csv")
        assert count_records(cli_db) == 2

    def test_nothing_to_archive(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["archive", "--date", "2020-01-01", "--output-format", "log", "--project-dir", str(project_dir)],
        )

        assert result.exit_code == 0
        assert "No records found to archive." in result.output
        assert exported_files(project_dir) == []
        assert count_records(cli_db) == 3

    def test_dry_run(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(cli, ["archive", "--date", "2024-01-01", "--dry-run", "--project-dir", str(project_dir)])

        assert result.exit_code == 0
        assert "Dry run" in result.output
        assert "2022-01-01" in result.output
        assert exported_files(project_dir) == []
        assert count_records(cli_db) == 3

    def test_unsupported_format(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["archive", "--date", "2023-01-01", "--output-format", "xml", "--project-dir", str(project_dir)],
        )

        assert result.exit_code == 1
        assert "not supported" in result.output
        assert exported_files(project_dir) == []
        assert count_records(cli_db) == 3

    def test_database_failure(self, cli_db, project_dir, monkeypatch):
        """A failed delete exits 1, keeps the export file and every record"""
        monkeypatch.setattr(
            AsyncSession, "commit", AsyncMock(side_effect=OperationalError("DELETE", {}, Exception("database is locked")))
        )
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["archive", "--date", "2023-01-01", "--output-format", "csv", "--project-dir", str(project_dir)],
        )

        assert result.exit_code == 1
        assert "Failed to delete archived consent records" in result.output
        files = exported_files(project_dir)
        assert len(files) == 1
        assert files[0].startswith("2022-01-01-2022-01-01_exported_")
        assert count_records(cli_db) == 3

    def test_invalid_date(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(cli, ["archive", "--date", "01/01/2023", "--project-dir", str(project_dir)])

        assert result.exit_code == 1
        assert "Invalid date" in result.output
        assert count_records(cli_db) == 3

    def test_interactive_prompts(self, cli_db, project_dir):
        """Missing date and format are asked for"""
        runner = CliRunner()

        result = runner.invoke(cli, ["archive", "--project-dir", str(project_dir)], input="Today\nhtml\n")

        assert result.exit_code == 0, result.output
        assert "Please select a date range" in result.output
        assert "Please select an output format" in result.output
        files = exported_files(project_dir)
        assert len(files) == 1
        assert files[0].startswith("2022-01-01-2024-03-01_exported_")
        assert files[0].endswith(".html")
        assert count_records(cli_db) == 0

    def test_interactive_defaults(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(cli, ["archive", "--project-dir", str(project_dir)], input="\n\n")

        assert result.exit_code == 0, result.output
        files = exported_files(project_dir)
        assert len(files) == 1
        assert files[0].endswith(".log")
        assert count_records(cli_db) == 0

    def test_unknown_prompt_choice_is_asked_again(self, cli_db, project_dir):
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["archive", "--project-dir", str(project_dir), "--output-format", "csv"],
            input="Yesterday\n1 week ago\n",
        )

        assert result.exit_code == 0, result.output
        assert count_records(cli_db) == 0


def test_help_lists_options():
    result = CliRunner().invoke(cli, ["archive", "--help"])

    assert result.exit_code == 0
    for option in ("--date", "--output-format", "--dry-run", "--project-dir"):
        assert option in result.output
