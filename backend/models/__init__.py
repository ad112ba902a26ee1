from models.connection import ConnectionRequest, SessionRequest, SessionResponse, SessionListItem  # noqa: F401
from models.schema import ColumnDescriptor, ForeignKeyReference, TableDescriptor, SchemaModel  # noqa: F401
from models.snapshot import DataSnapshot  # noqa: F401
from models.operation import DbOperation, OperationContext, OperationRequest, OperationResult  # noqa: F401
