"""Database schema files and loader."""

from .schema_manager import SchemaManager

__all__ = ["SchemaManager"]
