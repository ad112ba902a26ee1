"""Exception hierarchy raised by the fixture engine."""


class FixtureError(Exception):
    """Base class for every error raised by the fixture engine."""


class SchemaError(FixtureError):
    """Schema source is missing or malformed, or a keyed command was requested for a keyless table."""


class NotInitializedError(FixtureError):
    """A data or operation call was made before a schema was read."""


class CyclicDependencyError(SchemaError):
    """The foreign-key graph contains a cycle."""

    def __init__(self, tables: list[str]):
        self.tables = tables
        super().__init__(f"Foreign-key cycle between tables: {', '.join(tables)}")


class UnknownTableError(FixtureError, KeyError):
    """A table name was requested that the schema does not declare."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        super().__init__(f"Table '{table_name}' is not declared in the schema")

    def __str__(self) -> str:
        return self.args[0]


class OperationError(FixtureError):
    """The database connection could not be opened or used."""
