"""
Repository for Reference and Screenshot database operations.

All access to the store goes through a ReferenceRepository bound to one
SQLAlchemy session. Store failures are rolled back and re-raised as
StorageUnavailable; missing rows raise NotFound.
"""
import logging
from functools import wraps
from typing import List, Optional, Sequence, Set

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from references_backend.errors import NotFound, ReferenceNotFound, StorageUnavailable
from references_database.models import Reference, Screenshot, utcnow

logger = logging.getLogger(__name__)

REFERENCE_FIELDS = ("title", "url", "description", "notes", "tags")
SCREENSHOT_MUTABLE_FIELDS = ("reference_id", "alt_text")

# Most recently touched first; id breaks ties so the order is total.
REFERENCE_ORDER = (Reference.updated_at.desc(), Reference.id.desc())
SCREENSHOT_ORDER = (Screenshot.created_at.desc(), Screenshot.id.desc())


def storage_operation(operation_name):
    """Roll back and re-raise store failures of the wrapped method as StorageUnavailable."""

    def decorator(function):
        @wraps(function)
        def wrapper(self, *args, **kwargs):
            try:
                return function(self, *args, **kwargs)
            except SQLAlchemyError as e:
                try:
                    self.session.rollback()
                except SQLAlchemyError:
                    logger.warning("Rollback after failed %s also failed", operation_name)
                logger.exception("Storage failure during %s", operation_name)
                raise StorageUnavailable(f"{operation_name} failed: {e}") from e

        return wrapper

    return decorator


# PUBLIC_INTERFACE
class ReferenceRepository:
    """Repository for Reference and Screenshot database operations"""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Query surface used by the query engine and tag index
    # ------------------------------------------------------------------

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @storage_operation("fetch_all")
    def fetch_all(self) -> List[Reference]:
        """Get every Reference, most recently updated first"""
        return list(self.session.scalars(select(Reference).order_by(*REFERENCE_ORDER)))

    @storage_operation("fetch_by_id")
    def fetch_by_id(self, reference_id: int) -> Optional[Reference]:
        """Get a Reference by primary key, or None"""
        return self.session.get(Reference, reference_id)

    @storage_operation("fetch_all_tags")
    def fetch_all_tags(self) -> List[Optional[list]]:
        """Get the raw tags column of every Reference"""
        return list(self.session.scalars(select(Reference.tags)))

    @staticmethod
    def screenshots_exist_clause(present: bool = True):
        """
        Correlated EXISTS over screenshots owned by the outer Reference row.
        With present=False the clause is negated.
        """
        owned = select(Screenshot.id).where(Screenshot.reference_id == Reference.id).exists()
        return owned if present else ~owned

    @storage_operation("reference_ids_with_screenshots")
    def reference_ids_with_screenshots(self) -> Set[int]:
        """Ids of References owning at least one Screenshot"""
        rows = self.session.scalars(
            select(Screenshot.reference_id).where(Screenshot.reference_id.isnot(None)).distinct()
        )
        return set(rows)

    @storage_operation("execute_search")
    def execute(self, clauses: Sequence) -> List[Reference]:
        """Run one SELECT over references with all clauses ANDed, in listing order"""
        stmt = select(Reference)
        if clauses:
            stmt = stmt.where(and_(*clauses))
        return list(self.session.scalars(stmt.order_by(*REFERENCE_ORDER)))

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    @storage_operation("create_reference")
    def create_reference(self, **fields) -> Reference:
        """Create new Reference record"""
        now = utcnow()
        item = Reference(
            **{key: value for key, value in fields.items() if key in REFERENCE_FIELDS},
            created_at=now,
            updated_at=now,
        )
        if item.tags is None:
            item.tags = []
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        logger.info("Created reference %s", item.id)
        return item

    @storage_operation("update_reference")
    def update_reference(self, reference_id: int, **fields) -> Reference:
        """Update the given fields of a Reference and refresh updated_at"""
        item = self.session.get(Reference, reference_id)
        if item is None:
            raise NotFound("Reference", reference_id)

        for key, value in fields.items():
            if key in REFERENCE_FIELDS:
                setattr(item, key, list(value) if key == "tags" else value)
        item.updated_at = max(utcnow(), item.created_at)

        self.session.commit()
        self.session.refresh(item)
        logger.info("Updated reference %s (%s)", reference_id, ", ".join(sorted(fields)) or "touch")
        return item

    @storage_operation("delete_reference")
    def delete_reference(self, reference_id: int) -> None:
        """Delete a Reference together with every Screenshot it owns"""
        item = self.session.get(Reference, reference_id)
        if item is None:
            raise NotFound("Reference", reference_id)

        removed = (
            self.session.query(Screenshot)
            .filter(Screenshot.reference_id == reference_id)
            .delete()
        )
        self.session.delete(item)
        self.session.commit()
        logger.info("Deleted reference %s and %d screenshot(s)", reference_id, removed)

    # ------------------------------------------------------------------
    # Screenshots
    # ------------------------------------------------------------------

    def _require_reference(self, reference_id: Optional[int]) -> None:
        if reference_id is not None and self.session.get(Reference, reference_id) is None:
            raise ReferenceNotFound(reference_id)

    @storage_operation("create_screenshot")
    def create_screenshot(self, **fields) -> Screenshot:
        """Create new Screenshot record after checking its owner exists"""
        self._require_reference(fields.get("reference_id"))
        item = Screenshot(**fields)
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        logger.info("Created screenshot %s (reference %s)", item.id, item.reference_id)
        return item

    @storage_operation("update_screenshot")
    def update_screenshot(self, screenshot_id: int, **fields) -> Screenshot:
        """Update ownership and/or alt text; an empty update returns the row as-is"""
        if "reference_id" in fields:
            self._require_reference(fields["reference_id"])

        item = self.session.get(Screenshot, screenshot_id)
        if item is None:
            raise NotFound("Screenshot", screenshot_id)

        changes = {k: v for k, v in fields.items() if k in SCREENSHOT_MUTABLE_FIELDS}
        if not changes:
            return item

        for key, value in changes.items():
            setattr(item, key, value)
        self.session.commit()
        self.session.refresh(item)
        logger.info("Updated screenshot %s (%s)", screenshot_id, ", ".join(sorted(changes)))
        return item

    @storage_operation("delete_screenshot")
    def delete_screenshot(self, screenshot_id: int) -> None:
        """Delete Screenshot record"""
        item = self.session.get(Screenshot, screenshot_id)
        if item is None:
            raise NotFound("Screenshot", screenshot_id)

        self.session.delete(item)
        self.session.commit()
        logger.info("Deleted screenshot %s", screenshot_id)

    @storage_operation("list_screenshots")
    def list_screenshots(self) -> List[Screenshot]:
        """Get all Screenshot records, newest first"""
        return list(self.session.scalars(select(Screenshot).order_by(*SCREENSHOT_ORDER)))

    @storage_operation("screenshots_for")
    def screenshots_for(self, reference_id: int) -> List[Screenshot]:
        """Get the Screenshots owned by one Reference, newest first"""
        stmt = select(Screenshot).where(Screenshot.reference_id == reference_id)
        return list(self.session.scalars(stmt.order_by(*SCREENSHOT_ORDER)))

    @storage_operation("independent_screenshots")
    def independent_screenshots(self) -> List[Screenshot]:
        """Get Screenshots with no owning Reference, newest first"""
        stmt = select(Screenshot).where(Screenshot.reference_id.is_(None))
        return list(self.session.scalars(stmt.order_by(*SCREENSHOT_ORDER)))
