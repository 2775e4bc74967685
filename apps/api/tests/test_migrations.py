"""
Alembic migrations build the same schema as the models, from an empty database.
"""
from alembic import command
from sqlalchemy import create_engine, inspect

from models import Base
from tests.helpers import alembic_config


def test_upgrade_and_downgrade_on_fresh_database(tmp_path):
    url = f"sqlite:///{tmp_path / 'fresh.db'}"
    cfg = alembic_config(url)

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
        assert set(Base.metadata.tables) <= tables
        assert "alembic_version" in tables

        columns = {c["name"] for c in inspect(engine).get_columns("profiles")}
        assert {"credits", "last_bonus_granted_on", "age"} <= columns

        uniques = inspect(engine).get_unique_constraints("credit_purchases")
        assert any(u["column_names"] == ["stripe_session_id"] for u in uniques)
    finally:
        engine.dispose()

    command.downgrade(cfg, "base")

    engine = create_engine(url)
    try:
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()
