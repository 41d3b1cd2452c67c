"""Discovery of migration steps.

A migration file is a Python module named after a sortable id, written like
an Alembic revision script::

    # migrations/20240105093000_create_accounts.py
    from alembic import op
    import sqlalchemy as sa


    def upgrade():
        op.create_table("accounts", sa.Column("id", sa.Integer, primary_key=True))


    def downgrade():
        op.drop_table("accounts")

The step id is the file name without ``.py``.
"""
from __future__ import annotations

import importlib.util
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from schemalock.exceptions import ConfigurationError

# 14-digit timestamp prefix + descriptive suffix
DEFAULT_PATTERN = r"^\d{14}_.+\.py$"


@dataclass(frozen=True)
class MigrationStep:
    migration_id: str
    upgrade: Callable[[], None]
    downgrade: Optional[Callable[[], None]] = None


class MigrationSource:
    """Ordered, read-only sequence of migration steps.

    Steps either come from ``steps`` or are discovered once from the files
    in ``path`` whose names match ``pattern``.
    """

    def __init__(
        self,
        path: str | Path = "migrations",
        pattern: str = DEFAULT_PATTERN,
        up_name: str = "upgrade",
        down_name: str = "downgrade",
        steps: Optional[Iterable[MigrationStep]] = None,
    ):
        self.path = Path(path)
        self.pattern = re.compile(pattern)
        self.up_name = up_name
        self.down_name = down_name
        self._steps = _sorted_unique(steps) if steps is not None else None
        self._load_lock = threading.Lock()

    def steps(self) -> list[MigrationStep]:
        if self._steps is None:
            with self._load_lock:
                if self._steps is None:
                    self._steps = _sorted_unique(self._discover())
        return list(self._steps)

    def get(self, migration_id: str) -> Optional[MigrationStep]:
        for step in self.steps():
            if step.migration_id == migration_id:
                return step
        return None

    def _discover(self) -> list[MigrationStep]:
        if not self.path.is_dir():
            logger.warning(f"Migration directory does not exist: {self.path}")
            return []
        files = sorted(p for p in self.path.iterdir() if p.is_file() and self.pattern.match(p.name))
        logger.debug(f"Found {len(files)} migration file(s) in {self.path}")
        return [self._load(p) for p in files]

    def _load(self, path: Path) -> MigrationStep:
        migration_id = path.stem
        spec = importlib.util.spec_from_file_location(f"schemalock_migrations.{migration_id}", path)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Cannot load migration file {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        upgrade = getattr(module, self.up_name, None)
        if not callable(upgrade):
            raise ConfigurationError(f"Migration {migration_id} has no '{self.up_name}' function")
        downgrade = getattr(module, self.down_name, None)
        return MigrationStep(migration_id, upgrade, downgrade if callable(downgrade) else None)


def _sorted_unique(steps: Iterable[MigrationStep]) -> list[MigrationStep]:
    ordered = sorted(steps, key=lambda s: s.migration_id)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.migration_id == current.migration_id:
            raise ConfigurationError(f"Duplicate migration id {current.migration_id}")
    return ordered
