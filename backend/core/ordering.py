"""
Dependency orderer — topological sort of tables over the foreign-key graph.
Parent tables come before the tables that reference them.
"""
import logging

from core.exceptions import CyclicDependencyError
from models.schema import SchemaModel

logger = logging.getLogger(__name__)


def dependency_order(schema: SchemaModel) -> list[str]:
    """
    Return table names parent-first.

    Kahn's algorithm; among tables that are ready at the same step the one
    declared first in the schema wins. Self-references are skipped.
    Raises CyclicDependencyError if any other cycle remains.
    """
    names = schema.table_names
    position = {name: i for i, name in enumerate(names)}

    parents: dict[str, set[str]] = {name: set() for name in names}
    children: dict[str, set[str]] = {name: set() for name in names}
    for table in schema.tables:
        for parent in table.referenced_tables:
            if parent == table.name:
                continue
            parents[table.name].add(parent)
            children[parent].add(table.name)

    pending = {name: len(parents[name]) for name in names}
    ready = [name for name in names if pending[name] == 0]
    order: list[str] = []

    while ready:
        ready.sort(key=position.__getitem__)
        current = ready.pop(0)
        order.append(current)
        for child in children[current]:
            pending[child] -= 1
            if pending[child] == 0:
                ready.append(child)

    if len(order) != len(names):
        stuck = [name for name in names if name not in order]
        logger.error("Foreign-key cycle detected among %s", stuck)
        raise CyclicDependencyError(stuck)

    return order


def reverse_dependency_order(schema: SchemaModel) -> list[str]:
    """Child-first order, used for deletes."""
    return list(reversed(dependency_order(schema)))
