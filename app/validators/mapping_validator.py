"""
app/validators/mapping_validator.py

Whole-file validation of resolved import column mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    canonical_field: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "canonical_field": self.canonical_field,
            "source_column": self.source_column,
            "context": self.context,
        }


class SchemaMappingError(ValueError):
    """
    Raised when the file headers cannot be mapped well enough to import any row.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [error.to_dict() for error in self.errors],
        }


class MappingValidator:
    """
    Checks that every required report field has a source column.
    """

    def __init__(
        self,
        *,
        required_fields: Sequence[str],
        canonical_fields: Sequence[str],
    ) -> None:
        self._required_fields = tuple(required_fields)
        self._canonical_set = frozenset(canonical_fields)

    def validate(
        self,
        *,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
        pre_errors: Sequence[MappingErrorDetail] | None = None,
    ) -> None:
        errors: list[MappingErrorDetail] = list(pre_errors or [])
        headers_set = set(source_headers)

        for canonical_field, source_column in mapping.items():
            if canonical_field not in self._canonical_set:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_canonical_field",
                        message="Unknown report field in mapping.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
            elif source_column not in headers_set:
                errors.append(
                    MappingErrorDetail(
                        code="unknown_source_column",
                        message="Mapped source column does not exist in the file headers.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )

        missing = [field for field in self._required_fields if field not in mapping]
        for required in missing:
            errors.append(
                MappingErrorDetail(
                    code="required_field_unmapped",
                    message="Required report field is not mapped to any column.",
                    canonical_field=required,
                    context={"source_headers": list(source_headers)},
                )
            )

        if not errors:
            return

        if missing:
            message = f"Import file is missing required columns: {', '.join(missing)}."
        else:
            message = "Import column mapping is invalid."
        raise SchemaMappingError(message=message, errors=errors)
