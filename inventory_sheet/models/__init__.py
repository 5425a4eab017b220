from .record import (
    Category, Dependency, EntityConfig, FunctionalUnit, Group, InventoryRecord,
    Photo, Quotation, RecordValidationError, Responsible, Subcategory, Subgroup,
)

__all__ = [
    "InventoryRecord", "RecordValidationError", "EntityConfig",
    "Photo", "Quotation", "Category", "Subcategory", "Responsible",
    "Group", "Dependency", "FunctionalUnit", "Subgroup",
]
