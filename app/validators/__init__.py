"""
app/validators package marker.
"""

from app.validators.mapping_validator import MappingErrorDetail, MappingValidator, SchemaMappingError
from app.validators.value_coercer import FieldType, ValueCoercer

__all__ = [
    "FieldType",
    "MappingErrorDetail",
    "MappingValidator",
    "SchemaMappingError",
    "ValueCoercer",
]
