"""
app/services/template_export.py

Downloadable CSV template for bulk report imports.
"""

from __future__ import annotations

import csv
import io

from app.mappers.column_mapper import CANONICAL_FIELDS, display_header

TEMPLATE_FILENAME = "report_import_template.csv"

EXAMPLE_ROW: dict[str, str] = {
    "title": "Global Electric Vehicle Battery Market",
    "reportCode": "EVB-2026-001",
    "subTitle": "Size, Share and Forecast 2026-2032",
    "author": "Research Team",
    "category": "Automotive",
    "subCategory": "Electric Vehicles",
    "reportDescription": "MARKET OVERVIEW\nThe battery market is expanding as EV adoption accelerates.",
    "tableOfContents": "1. Introduction\n2. Market Dynamics\n3. Competitive Landscape",
    "segmentation": "By Chemistry:\n- Lithium-ion\n- Solid-state",
    "companies": "- Contemporary Amperex\n- LG Energy Solution",
    "content": "",
    "numberOfPages": "180",
    "excelDataPackLicense": "$1,499",
    "singleUserLicense": "$3,499",
    "enterpriseLicensePrice": "$5,999",
    "publishedAt": "2026-01-15",
    "tags": "ev, batteries; energy storage",
    "featured": "false",
    "popular": "true",
    "status": "draft",
    "slug": "",
    "metaTitle": "Global EV Battery Market Report 2026",
    "metaDescription": "Market size, share and forecast for EV batteries.",
    "metaKeywords": "ev battery market, lithium-ion",
}


def template_headers() -> list[str]:
    return [display_header(field) for field in CANONICAL_FIELDS]


def build_import_template() -> bytes:
    """
    Return a UTF-8 (with BOM) CSV holding the display headers and one example row.
    """

    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(template_headers())
    writer.writerow([EXAMPLE_ROW.get(field, "") for field in CANONICAL_FIELDS])
    return buffer.getvalue().encode("utf-8-sig")
