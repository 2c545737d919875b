"""Alembic migration tests."""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from homemates.db.database import Base

MIGRATIONS = Path(__file__).resolve().parents[1] / "src" / "homemates" / "db" / "migrations"


def alembic_config(db_path: Path) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS))
    cfg.attributes["sqlalchemy.url"] = f"sqlite+aiosqlite:///{db_path}"
    return cfg


class TestMigrations:
    """The migration chain builds the same schema as the models."""

    def test_upgrade_matches_models(self, tmp_path):
        db_path = tmp_path / "migrated.db"
        command.upgrade(alembic_config(db_path), "head")

        engine = create_engine(f"sqlite:///{db_path}")
        try:
            inspector = inspect(engine)
            tables = set(inspector.get_table_names()) - {"alembic_version"}
            assert tables == set(Base.metadata.tables)

            for name, table in Base.metadata.tables.items():
                columns = {c["name"] for c in inspector.get_columns(name)}
                assert columns == {c.name for c in table.columns}, name
        finally:
            engine.dispose()

    def test_downgrade_to_base(self, tmp_path):
        db_path = tmp_path / "migrated.db"
        cfg = alembic_config(db_path)
        command.upgrade(cfg, "head")
        command.downgrade(cfg, "base")

        engine = create_engine(f"sqlite:///{db_path}")
        try:
            assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
        finally:
            engine.dispose()
