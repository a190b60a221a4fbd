"""
app/mappers/column_mapper.py

Column mapping from spreadsheet headers to canonical report fields.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from app.domain.report_import import FieldMap, RawRow
from app.validators.mapping_validator import MappingErrorDetail, MappingValidator

logger = logging.getLogger(__name__)

CANONICAL_FIELDS: tuple[str, ...] = (
    "title",
    "reportCode",
    "subTitle",
    "author",
    "category",
    "subCategory",
    "reportDescription",
    "tableOfContents",
    "segmentation",
    "companies",
    "content",
    "numberOfPages",
    "excelDataPackLicense",
    "singleUserLicense",
    "enterpriseLicensePrice",
    "publishedAt",
    "tags",
    "featured",
    "popular",
    "status",
    "slug",
    "metaTitle",
    "metaDescription",
    "metaKeywords",
)

REQUIRED_CANONICAL_FIELDS: tuple[str, ...] = ("title",)

# The first variant of each entry is the display header used by the import template.
HEADER_SYNONYMS: dict[str, tuple[str, ...]] = {
    "title": ("Title", "Report Title", "Report Name", "Name"),
    "reportCode": ("Report Code", "Code", "Report ID", "SKU"),
    "subTitle": ("Sub Title", "Subtitle", "Report Subtitle"),
    "author": ("Author", "Analyst", "Written By"),
    "category": ("Category", "Industry", "Sector"),
    "subCategory": ("Sub Category", "Subcategory", "Sub Industry", "Sub Sector"),
    "reportDescription": (
        "Report Description",
        "Summary",
        "Description",
        "Executive Summary",
        "Report Overview",
        "Overview",
    ),
    "tableOfContents": ("Table of Contents", "TOC", "Contents List"),
    "segmentation": ("Segmentation", "Market Segmentation", "Segments"),
    "companies": ("Companies", "Key Players", "Companies Profiled", "Key Companies"),
    "content": ("Content", "Body", "Report Content"),
    "numberOfPages": ("Number of Pages", "Pages", "No. of Pages", "Page Count"),
    "excelDataPackLicense": (
        "Excel Data Pack License",
        "Excel Datapack Price",
        "Data Pack Price",
        "Excel Price",
    ),
    "singleUserLicense": ("Single User License", "Single User Price", "Single User"),
    "enterpriseLicensePrice": (
        "Enterprise License Price",
        "Enterprise License",
        "Enterprise Price",
        "Corporate License",
    ),
    "publishedAt": ("Published At", "Publish Date", "Published Date", "Publication Date", "Date"),
    "tags": ("Tags", "Tag List"),
    "featured": ("Featured", "Is Featured"),
    "popular": ("Popular", "Is Popular"),
    "status": ("Status", "Publish Status"),
    "slug": ("Slug", "URL Slug", "Permalink"),
    "metaTitle": ("Meta Title", "SEO Title"),
    "metaDescription": ("Meta Description", "SEO Description"),
    "metaKeywords": ("Meta Keywords", "SEO Keywords"),
}


def normalize_header(header: str) -> str:
    """
    Normalize a column name for case, whitespace and punctuation-insensitive matching.
    """

    return "".join(ch for ch in header.strip().lower() if ch.isalnum())


def display_header(canonical_field: str) -> str:
    return HEADER_SYNONYMS.get(canonical_field, (canonical_field,))[0]


class ColumnMapper:
    """
    Maps incoming spreadsheet columns to canonical report fields.
    """

    def __init__(
        self,
        synonyms: Mapping[str, Sequence[str]] | None = None,
        *,
        validator: MappingValidator | None = None,
    ) -> None:
        synonym_map = synonyms or HEADER_SYNONYMS
        lookup: dict[str, str] = {}
        for canonical_field in CANONICAL_FIELDS:
            for variant in (canonical_field, *synonym_map.get(canonical_field, ())):
                normalized = normalize_header(variant)
                claimed = lookup.get(normalized)
                if claimed is not None and claimed != canonical_field:
                    raise ValueError(
                        f"Header variant {variant!r} is claimed by both {claimed!r} and {canonical_field!r}."
                    )
                lookup[normalized] = canonical_field
        self._lookup = lookup
        self._validator = validator or MappingValidator(
            required_fields=REQUIRED_CANONICAL_FIELDS,
            canonical_fields=CANONICAL_FIELDS,
        )

    def resolve_header(self, header: str) -> str | None:
        return self._lookup.get(normalize_header(header))

    def build_field_map(
        self,
        headers: Sequence[str],
        *,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> FieldMap:
        """
        Resolve header -> canonical field for one file.

        When several headers resolve to the same field the right-most one wins;
        the losers are reported as shadowed. Unmapped headers never fail.
        """

        overrides = dict(manual_overrides or {})
        pre_errors = self._override_errors(overrides, headers)

        header_to_field: dict[str, str] = {}
        canonical_to_source: dict[str, str] = {}
        match_strategies: dict[str, str] = {}
        unmapped: list[str] = []
        shadowed: list[str] = []

        for header in headers:
            if header in overrides and overrides[header] in CANONICAL_FIELDS:
                canonical_field: str | None = overrides[header]
                strategy = "manual_override"
            else:
                canonical_field = self.resolve_header(header)
                strategy = "synonym"

            if canonical_field is None:
                unmapped.append(header)
                continue

            previous = canonical_to_source.get(canonical_field)
            if previous is not None:
                shadowed.append(previous)
                header_to_field.pop(previous, None)
                match_strategies.pop(previous, None)

            canonical_to_source[canonical_field] = header
            header_to_field[header] = canonical_field
            match_strategies[header] = strategy

        self._validator.validate(
            mapping=canonical_to_source,
            source_headers=headers,
            pre_errors=pre_errors,
        )

        if unmapped:
            logger.warning("Ignoring unmapped import headers: %s", ", ".join(unmapped))
        if shadowed:
            logger.warning(
                "Import headers shadowed by later columns for the same field: %s",
                ", ".join(shadowed),
            )

        return FieldMap(
            header_to_field=header_to_field,
            canonical_to_source=canonical_to_source,
            source_headers=tuple(headers),
            unmapped_headers=tuple(unmapped),
            shadowed_headers=tuple(shadowed),
            match_strategies=match_strategies,
        )

    def map_row(self, raw_row: RawRow, field_map: FieldMap) -> dict[str, str]:
        """
        Convert a source row into canonical field -> raw cell string.
        """

        return {
            canonical_field: raw_row.cells.get(source_header, "") or ""
            for canonical_field, source_header in field_map.canonical_to_source.items()
        }

    @staticmethod
    def _override_errors(
        overrides: Mapping[str, str],
        headers: Sequence[str],
    ) -> list[MappingErrorDetail]:
        errors: list[MappingErrorDetail] = []
        header_set = set(headers)
        for source_header, canonical_field in overrides.items():
            if canonical_field not in CANONICAL_FIELDS:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_override_field",
                        message="Manual override targets an unknown report field.",
                        canonical_field=canonical_field,
                        source_column=source_header,
                    )
                )
            if source_header not in header_set:
                errors.append(
                    MappingErrorDetail(
                        code="override_source_not_found",
                        message="Manual override source column does not exist in the file headers.",
                        canonical_field=canonical_field,
                        source_column=source_header,
                    )
                )
        return errors
