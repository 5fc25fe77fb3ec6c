from tom.models.field import FieldDescriptor
from tom.models.mapping import TypeRegistry


class Column:
    """A table column: a field plus the DDL-only argument clause and default literal."""

    def __init__(self, field: FieldDescriptor, registry: TypeRegistry) -> None:
        self.field = field
        self._registry = registry
        self.arguments: str | None = None
        self.default: str | None = None
        if field.is_mapped:
            mapping = registry.resolve(field.annotation)
            self.arguments = mapping.arguments
            self.default = mapping.default

    @property
    def name(self) -> str:
        return self.field.name

    def secure(self) -> None:
        """Configure this column, and its field, as encrypted at rest."""
        mapping = self._registry.secure_mapping
        self.arguments = mapping.arguments
        self.default = mapping.default
        self.field.secure()

    def __repr__(self) -> str:
        return f"Column({self.field!r}, arguments={self.arguments!r}, default={self.default!r})"
