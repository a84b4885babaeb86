import importlib.util
import os

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from chefos import _import_models, db

from conftest import ROOT

INITIAL = os.path.join(ROOT, "alembic", "versions", "20251018_01_initial_schema.py")


def _load_initial():
    spec = importlib.util.spec_from_file_location("initial_schema", INITIAL)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(module, step, engine):
    with engine.begin() as conn:
        module.op = Operations(MigrationContext.configure(conn))
        getattr(module, step)()


def test_initial_migration_matches_models(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
    module = _load_initial()
    _run(module, "upgrade", engine)

    _import_models()
    inspector = sa.inspect(engine)
    assert set(inspector.get_table_names()) == set(db.metadata.tables)
    assert set(module.TABLES) == set(db.metadata.tables)
    for name, table in db.metadata.tables.items():
        migrated = {c["name"] for c in inspector.get_columns(name)}
        assert migrated == {c.name for c in table.columns}, name

    money = {c["name"]: c["type"] for c in inspector.get_columns("vendor_invoices")}
    assert isinstance(money["total_amount"], sa.Numeric) and money["total_amount"].scale == 2
    checks = {c["name"] for c in inspector.get_check_constraints("deal_codes")}
    assert "ck_deal_code_status" in checks
    uniques = {u["name"] for u in inspector.get_unique_constraints("pnl_snapshots")}
    assert "uq_pnl_snapshot_period" in uniques

    _run(module, "downgrade", engine)
    assert sa.inspect(engine).get_table_names() == []
    engine.dispose()
