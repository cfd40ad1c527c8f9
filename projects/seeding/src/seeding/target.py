"""Deployment targets that create schemas in a live database."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import SQLAlchemyError

from dbschema.sqlalchemy_export import policy_statements, schema_to_metadata

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from dbschema.types import DatabaseSchema

logger = getLogger(__name__)


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of a deployment step."""

    success: bool
    message: str
    error_code: str | None = None


class DeploymentTarget(Protocol):
    """A database that schemas can be deployed to."""

    def create_tables(self, schema: DatabaseSchema) -> DeploymentResult:
        """Create every table, index and policy of the schema."""
        ...

    def execute_sql(self, sql: str) -> DeploymentResult:
        """Run a single SQL statement."""
        ...


class EngineTarget:
    """Deployment target backed by a SQLAlchemy engine.

    CHECK constraints, server defaults and row level security are only
    emitted for PostgreSQL, where their expressions are valid.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @property
    def is_postgres(self) -> bool:
        return self.engine.dialect.name == "postgresql"

    def create_tables(self, schema: DatabaseSchema) -> DeploymentResult:
        metadata = schema_to_metadata(
            schema,
            include_checks=self.is_postgres,
            include_defaults=self.is_postgres,
        )
        try:
            with self.engine.begin() as connection:
                metadata.create_all(connection, checkfirst=False)
                if self.is_postgres:
                    for statement in policy_statements(schema):
                        connection.exec_driver_sql(statement)
        except SQLAlchemyError as err:
            logger.error("Failed to create tables for %s: %s", schema["name"], err)
            return DeploymentResult(
                success=False,
                message=f"Failed to create tables: {err}",
                error_code=err.code,
            )

        return DeploymentResult(
            success=True,
            message=f"Created {len(metadata.tables)} tables",
        )

    def execute_sql(self, sql: str) -> DeploymentResult:
        try:
            with self.engine.begin() as connection:
                connection.exec_driver_sql(sql)
        except SQLAlchemyError as err:
            logger.error("Failed to execute SQL: %s", err)
            return DeploymentResult(
                success=False,
                message=f"Failed to execute SQL: {err}",
                error_code=err.code,
            )

        return DeploymentResult(success=True, message="SQL executed")
