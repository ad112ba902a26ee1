"""Pydantic schemas for table, column and foreign-key descriptors."""
from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.exceptions import UnknownTableError


class ColumnDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    data_type: str = "TEXT"
    nullable: bool = True
    identity: bool = False   # value assigned by the database on insert


class ForeignKeyReference(BaseModel):
    """Referencing column(s) of the owning table → referenced table + column(s)."""
    model_config = ConfigDict(frozen=True)

    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]

    @model_validator(mode="after")
    def _check_arity(self):
        if not self.columns:
            raise ValueError("foreign key must name at least one column")
        if len(self.columns) != len(self.referenced_columns):
            raise ValueError(
                f"foreign key {list(self.columns)} → {self.referenced_table}"
                f"{list(self.referenced_columns)} has mismatched column counts"
            )
        return self


class TableDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    columns: tuple[ColumnDescriptor, ...]
    primary_key: tuple[str, ...] = ()
    foreign_keys: tuple[ForeignKeyReference, ...] = ()

    @model_validator(mode="after")
    def _check_columns(self):
        names = [c.name for c in self.columns]
        if not names:
            raise ValueError(f"table '{self.name}' declares no columns")
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"table '{self.name}' declares duplicate columns: {dupes}")
        missing = [k for k in self.primary_key if k not in names]
        if missing:
            raise ValueError(f"primary key of '{self.name}' names unknown columns: {missing}")
        if len(set(self.primary_key)) != len(self.primary_key):
            raise ValueError(f"primary key of '{self.name}' repeats a column")
        for fk in self.foreign_keys:
            unknown = [c for c in fk.columns if c not in names]
            if unknown:
                raise ValueError(f"foreign key of '{self.name}' names unknown columns: {unknown}")
        return self

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def identity_columns(self) -> list[str]:
        return [c.name for c in self.columns if c.identity]

    @property
    def non_identity_columns(self) -> list[str]:
        return [c.name for c in self.columns if not c.identity]

    @property
    def non_key_columns(self) -> list[str]:
        return [c.name for c in self.columns if c.name not in self.primary_key]

    @property
    def has_primary_key(self) -> bool:
        return bool(self.primary_key)

    @property
    def referenced_tables(self) -> list[str]:
        seen: list[str] = []
        for fk in self.foreign_keys:
            if fk.referenced_table not in seen:
                seen.append(fk.referenced_table)
        return seen

    def get_column(self, name: str) -> ColumnDescriptor:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(f"column '{name}' is not declared on table '{self.name}'")


class SchemaModel(BaseModel):
    """
    Ordered set of table descriptors.
    Declaration order is significant: it breaks ties in dependency ordering
    and is the default order for fetching.
    """
    model_config = ConfigDict(frozen=True)

    tables: tuple[TableDescriptor, ...] = ()

    @model_validator(mode="after")
    def _check_references(self):
        by_name: dict[str, TableDescriptor] = {}
        for t in self.tables:
            if t.name in by_name:
                raise ValueError(f"table '{t.name}' is declared more than once")
            by_name[t.name] = t
        for t in self.tables:
            for fk in t.foreign_keys:
                target = by_name.get(fk.referenced_table)
                if target is None:
                    raise ValueError(
                        f"table '{t.name}' references undeclared table '{fk.referenced_table}'"
                    )
                unknown = [c for c in fk.referenced_columns if c not in target.column_names]
                if unknown:
                    raise ValueError(
                        f"table '{t.name}' references unknown columns {unknown} of '{target.name}'"
                    )
        return self

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    def has_table(self, name: str) -> bool:
        return any(t.name == name for t in self.tables)

    def get_table(self, name: str) -> TableDescriptor:
        for t in self.tables:
            if t.name == name:
                return t
        raise UnknownTableError(name)
