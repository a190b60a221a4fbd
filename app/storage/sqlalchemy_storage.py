"""
app/storage/sqlalchemy_storage.py

SQLAlchemy-backed report store.

Every call opens its own session and commits before returning, so one store
instance can be shared by the import worker threads.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Mapping

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.report_import import CanonicalRecord, NaturalKey
from app.storage.base import ReportStore, ReportStoreError
from db.models.category import Category, CategoryKind
from db.models.report import Report

logger = logging.getLogger(__name__)

# canonical field -> Report attribute
FIELD_COLUMNS: dict[str, str] = {
    "title": "title",
    "reportCode": "report_code",
    "subTitle": "sub_title",
    "author": "author",
    "category": "category",
    "subCategory": "sub_category",
    "reportDescription": "report_description",
    "tableOfContents": "table_of_contents",
    "segmentation": "segmentation",
    "companies": "companies",
    "content": "content",
    "numberOfPages": "number_of_pages",
    "excelDataPackLicense": "excel_data_pack_license",
    "singleUserLicense": "single_user_license",
    "enterpriseLicensePrice": "enterprise_license_price",
    "publishedAt": "published_at",
    "tags": "tags",
    "featured": "featured",
    "popular": "popular",
    "status": "status",
    "metaTitle": "meta_title",
    "metaDescription": "meta_description",
    "metaKeywords": "meta_keywords",
}

NATURAL_KEY_COLUMNS: dict[str, Any] = {
    "title": Report.title,
    "reportCode": Report.report_code,
}

MAX_WRITE_ATTEMPTS = 3
SLUG_MAX_LENGTH = 200

_SLUG_NOISE_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None) -> str:
    """
    Lower-case, hyphen-separated ASCII slug; empty when nothing survives.
    """

    slug = _SLUG_NOISE_RE.sub("-", (value or "").lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


class SQLAlchemyReportStore(ReportStore):
    """
    Persist imported reports and auto-create their category lookup rows.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._created_categories: dict[str, int] = {}

    def find_by_natural_key(self, key: NaturalKey) -> str | None:
        column = NATURAL_KEY_COLUMNS.get(key.field_name)
        if column is None:
            raise ReportStoreError(f"Unsupported natural key field: {key.field_name}")

        stmt = (
            select(Report.id)
            .where(func.lower(func.trim(column)) == key.value)
            .order_by(Report.created_at.asc())
            .limit(1)
        )
        with self._session_scope() as session:
            found = session.execute(stmt).scalar_one_or_none()
        return str(found) if found is not None else None

    def insert(self, record: CanonicalRecord) -> str:
        return self._write_with_retry(lambda session, created: self._insert(session, record, created))

    def update(self, existing_id: str, record: CanonicalRecord) -> str:
        return self._write_with_retry(
            lambda session, created: self._update(session, existing_id, record, created)
        )

    def created_category_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._created_categories)

    # ------------------------------------------------------------------
    # Write helpers
    # ------------------------------------------------------------------

    def _write_with_retry(self, operation: Callable[[Session, list[str]], str]) -> str:
        """
        Retry writes that lose a slug or category uniqueness race.
        """

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            created: list[str] = []
            try:
                with self._session_scope(translate_integrity=False) as session:
                    report_id = operation(session, created)
            except IntegrityError as exc:
                if attempt == MAX_WRITE_ATTEMPTS:
                    raise ReportStoreError(f"Report write conflicted after {attempt} attempts: {exc.orig}") from exc
                logger.info("Retrying report write after uniqueness conflict attempt=%d", attempt)
                time.sleep(0.05 * attempt)
                continue
            self._record_created(created)
            return report_id
        raise ReportStoreError("Report write did not complete.")

    def _insert(self, session: Session, record: CanonicalRecord, created: list[str]) -> str:
        payload = record.to_payload()
        report = Report(id=uuid.uuid4())
        self._apply_payload(report, payload)
        report.slug = self._unique_slug(session, title=report.title, desired=payload.get("slug"))
        self._attach_categories(session, report, created)
        session.add(report)
        session.flush()
        return str(report.id)

    def _update(
        self,
        session: Session,
        existing_id: str,
        record: CanonicalRecord,
        created: list[str],
    ) -> str:
        try:
            report_uuid = uuid.UUID(existing_id)
        except ValueError as exc:
            raise ReportStoreError(f"Invalid report id: {existing_id}") from exc

        report = session.get(Report, report_uuid)
        if report is None:
            raise ReportStoreError(f"Report {existing_id} no longer exists.")

        payload = record.to_payload()
        self._apply_payload(report, payload)
        desired = slugify(payload.get("slug"))
        if desired and desired != report.slug:
            report.slug = self._unique_slug(session, title=report.title, desired=desired, exclude_id=report.id)
        self._attach_categories(session, report, created)
        session.flush()
        return str(report.id)

    @staticmethod
    def _apply_payload(report: Report, payload: Mapping[str, Any]) -> None:
        for canonical_field, value in payload.items():
            attribute = FIELD_COLUMNS.get(canonical_field)
            if attribute is None:
                continue
            if isinstance(value, str) and not value and attribute != "title":
                value = None
            setattr(report, attribute, value)

    @staticmethod
    def _unique_slug(
        session: Session,
        *,
        title: str | None,
        desired: str | None = None,
        exclude_id: uuid.UUID | None = None,
    ) -> str:
        base = slugify(desired) or slugify(title) or uuid.uuid4().hex[:12]
        taken_stmt = select(Report.slug).where(
            (Report.slug == base) | Report.slug.like(f"{base}-%")
        )
        if exclude_id is not None:
            taken_stmt = taken_stmt.where(Report.id != exclude_id)
        taken = set(session.execute(taken_stmt).scalars().all())

        candidate = base
        suffix = 0
        while candidate in taken:
            suffix += 1
            candidate = f"{base}-{suffix}"
        return candidate

    def _attach_categories(self, session: Session, report: Report, created: list[str]) -> None:
        parent: Category | None = None
        if report.category:
            parent = self._get_or_create_category(
                session,
                name=report.category,
                kind=CategoryKind.CATEGORY,
                parent_id=None,
                created=created,
            )
            report.category_id = parent.id
        if report.sub_category:
            child = self._get_or_create_category(
                session,
                name=report.sub_category,
                kind=CategoryKind.SUBCATEGORY,
                parent_id=parent.id if parent is not None else None,
                created=created,
            )
            report.sub_category_id = child.id

    @staticmethod
    def _get_or_create_category(
        session: Session,
        *,
        name: str,
        kind: str,
        parent_id: uuid.UUID | None,
        created: list[str],
    ) -> Category:
        slug = slugify(name) or uuid.uuid4().hex[:12]
        stmt = select(Category).where(Category.kind == kind, Category.slug == slug)
        existing = session.execute(stmt).scalar_one_or_none()
        if existing is not None:
            return existing

        category = Category(id=uuid.uuid4(), kind=kind, name=name.strip(), slug=slug, parent_id=parent_id)
        try:
            with session.begin_nested():
                session.add(category)
                session.flush()
        except IntegrityError:
            # Another worker created it first.
            existing = session.execute(stmt).scalar_one_or_none()
            if existing is None:
                raise
            return existing
        created.append(kind)
        return category

    def _record_created(self, kinds: list[str]) -> None:
        if not kinds:
            return
        with self._lock:
            for kind in kinds:
                self._created_categories[kind] = self._created_categories.get(kind, 0) + 1

    @contextmanager
    def _session_scope(self, *, translate_integrity: bool = True) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if not translate_integrity:
                raise
            raise ReportStoreError(f"Report store conflict: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise ReportStoreError(f"Report store failure: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
