from core.exceptions import (  # noqa: F401
    FixtureError,
    SchemaError,
    NotInitializedError,
    CyclicDependencyError,
    UnknownTableError,
    OperationError,
)
