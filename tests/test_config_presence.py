from pathlib import Path

from api.routes.health import migration_versions
from migrate import read_migrations


def test_required_configs_exist():
    repo = Path(__file__).resolve().parents[1]
    assert (repo / "pyproject.toml").exists()
    assert (repo / ".env.example").exists()
    assert (repo / "sql" / "migrations" / "001_initial_schema.sql").exists()


def test_migrations_are_versioned():
    versions = [version for version, _, _ in read_migrations()]
    assert versions == sorted(versions)
    assert list(migration_versions()) == versions


def test_initial_schema_enforces_one_row_per_link_and_day():
    repo = Path(__file__).resolve().parents[1]
    sql = (repo / "sql" / "migrations" / "001_initial_schema.sql").read_text()
    assert "UNIQUE (link_id, date)" in sql
