"""Apply and revert migration steps under the schema update lock."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional

from alembic.migration import MigrationContext
from alembic.operations import Operations
from loguru import logger

from schemalock.exceptions import ConfigurationError, MigrationError, MigrationNotFound
from schemalock.lib.database import drop_db
from schemalock.lib.migration_storage import MigrationStorage
from schemalock.services.migration_source import MigrationSource, MigrationStep
from schemalock.services.schema_updater import SchemaUpdater


class MigrationState(str, enum.Enum):
    PENDING = "pending"
    EXECUTED = "executed"


@dataclass(frozen=True)
class MigrationStatus:
    migration_id: str
    state: MigrationState

    def __str__(self) -> str:
        flag = "[EXECUTED]  " if self.state is MigrationState.EXECUTED else "[PENDING...]"
        return f"{flag} {self.migration_id}"


class Migrator:
    """Allow to execute migration steps.

    ``up`` and ``down`` run inside :meth:`SchemaUpdater.update_schema`, so at
    most one process migrates at a time and the schema version is written
    only after every step of the call succeeded. Each step runs in its own
    transaction together with its bookkeeping row; when a step fails the
    steps before it stay applied.
    """

    def __init__(self, engine, updater: SchemaUpdater, source: MigrationSource,
                 storage: Optional[MigrationStorage] = None):
        if engine is None:
            raise ConfigurationError("Migrator requires an engine")
        if updater is None or source is None:
            raise ConfigurationError("Migrator requires a schema updater and a migration source")
        self.engine = engine
        self.updater = updater
        self.source = source
        self.storage = storage or MigrationStorage(engine)

    def executed(self) -> list[str]:
        return self.storage.executed()

    def pending(self, to: Optional[str] = None) -> list[MigrationStep]:
        executed = set(self.storage.executed())
        return [
            step for step in self.source.steps()
            if step.migration_id not in executed and (to is None or step.migration_id <= to)
        ]

    def up(self, version: str, to: Optional[str] = None) -> list[str]:
        """Get the lock and execute pending migration steps, then set the schema version.

        Args:
            version: The new schema version
            to: Last migration id to apply (inclusive); all pending steps when None

        The version is written even when nothing is pending, so ``up`` with
        no pending steps changes only the version, and nothing at all when
        the version is the same.

        Returns:
            Ids of the steps applied by this call, in order

        Raises:
            MigrationError: If a step failed; its ``completed`` lists the steps
                applied before it
        """
        def _up() -> list[str]:
            logger.debug("Migration up ...")
            applied: list[str] = []
            for step in self.pending(to):
                self._run(step, step.upgrade, self.storage.log_migration, applied)
                applied.append(step.migration_id)
            if applied:
                files = "".join(f"\n\t- {m}" for m in applied)
                logger.info(f"Executed migration files: {files}")
            else:
                logger.info("There is no pending migration files")
            return applied

        return self.updater.update_schema(version, _up)

    def down(self, version: str, to: Optional[str] = None) -> list[str]:
        """Get the lock and revert executed migration steps, then set the schema version.

        Args:
            version: The schema version after the revert
            to: Revert every executed step with an id >= ``to``; only the
                last executed step when None

        Returns:
            Ids of the steps reverted by this call, newest first

        Raises:
            MigrationError: If a step failed, has no downgrade or is missing
                from the source (``MigrationNotFound``); its ``completed``
                lists the steps reverted before it
        """
        def _down() -> list[str]:
            logger.debug("Migration down ...")
            executed = sorted(self.storage.executed(), reverse=True)
            if to is None:
                targets = executed[:1]
            else:
                targets = [m for m in executed if m >= to]

            reverted: list[str] = []
            for migration_id in targets:
                step = self.source.get(migration_id)
                if step is None:
                    raise MigrationNotFound(migration_id, reverted)
                if step.downgrade is None:
                    raise MigrationError(migration_id, reverted, reason="cannot be reverted")
                self._run(step, step.downgrade, self.storage.unlog_migration, reverted)
                reverted.append(migration_id)
            if reverted:
                files = "".join(f"\n\t- {m}" for m in reverted)
                logger.info(f"Reverted migration files: {files}")
            else:
                logger.info("All migration files have been reverted")
            return reverted

        return self.updater.update_schema(version, _down)

    def status(self) -> list[MigrationStatus]:
        """Executed and pending steps sorted by id. Does not take the lock."""
        executed = set(self.storage.executed())
        known = {step.migration_id for step in self.source.steps()}
        statuses = [
            MigrationStatus(m, MigrationState.EXECUTED if m in executed else MigrationState.PENDING)
            for m in sorted(known | executed)
        ]
        for status in statuses:
            logger.info(str(status))
        return statuses

    def reset(self, drop_all: bool = False) -> None:
        """Drop the lock, schema version and migration tables.

        With ``drop_all`` every table of the database is dropped. Never
        called automatically.
        """
        logger.debug("Drop all tables" if drop_all else "Drop schemalock tables")
        drop_db(self.engine, drop_all=drop_all)
        self.storage.invalidate()
        self.updater.version_store.invalidate()
        self.updater.lock_service.store.invalidate()

    def _run(self, step: MigrationStep, action: Callable[[], None],
             record: Callable[[str, object], None], completed: list[str]) -> None:
        self.storage.ensure_ready()
        try:
            with self.engine.begin() as connection:
                context = MigrationContext.configure(connection)
                with Operations.context(context):
                    action()
                record(step.migration_id, connection)
        except Exception as e:
            logger.error(f"Migration {step.migration_id} failed: {e}")
            raise MigrationError(step.migration_id, completed) from e
