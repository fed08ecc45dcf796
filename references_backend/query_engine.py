"""
Search over the reference catalog.

A SearchRequest is compiled into one Predicate per populated category. Each
predicate carries a native SQLAlchemy clause (None when the connected
dialect has no operator for it) and an in-memory test with the same
semantics, so the "native" and "memory" strategies return identical,
identically ordered results.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from sqlalchemy import and_, cast, func, literal, or_, select
from sqlalchemy.dialects.postgresql import JSONB

from references_backend.repository import ReferenceRepository
from references_backend.schemas import ReferenceOut, SearchRequest
from references_database.models import Reference

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("title", "description", "notes")


@dataclass
class SearchContext:
    """Facts shared by in-memory predicate tests during one search."""
    ids_with_screenshots: Optional[Set[int]] = None


@dataclass
class Predicate:
    category: str
    matches: Callable[[Reference, SearchContext], bool]
    clause: Optional[object] = None
    needs_screenshot_ids: bool = False


# ----------------------------------------------------------------------
# Category compilers
# ----------------------------------------------------------------------

def _text_predicate(query: str, dialect: str) -> Predicate:
    needle = query.lower()

    def matches(ref, ctx):
        return any(
            value is not None and needle in value.lower()
            for value in (getattr(ref, name) for name in TEXT_FIELDS)
        )

    # SQLite lower() and LIKE only fold ASCII, so matching there stays in Python.
    clause = None
    if dialect != "sqlite":
        clause = or_(
            *(getattr(Reference, name).icontains(query, autoescape=True) for name in TEXT_FIELDS)
        )
    return Predicate("query", matches, clause)


def _tags_clause(tags: List[str], dialect: str):
    if dialect == "postgresql":
        return cast(Reference.tags, JSONB).contains(tags)
    if dialect == "sqlite":
        clauses = []
        for tag in tags:
            elements = func.json_each(Reference.tags).table_valued("value")
            clauses.append(
                select(literal(1)).select_from(elements).where(elements.c.value == tag).exists()
            )
        return and_(*clauses)
    return None


def _tags_predicate(tags: List[str], dialect: str) -> Predicate:
    wanted = set(tags)

    def matches(ref, ctx):
        return wanted.issubset(ref.tags or ())

    return Predicate("tags", matches, _tags_clause(sorted(wanted), dialect))


def _url_predicate(has_url: bool) -> Predicate:
    if has_url:
        clause = and_(Reference.url.isnot(None), Reference.url != "")
    else:
        clause = or_(Reference.url.is_(None), Reference.url == "")

    def matches(ref, ctx):
        return bool(ref.url) is has_url

    return Predicate("has_url", matches, clause)


def _screenshots_predicate(has_screenshots: bool) -> Predicate:
    def matches(ref, ctx):
        return (ref.id in ctx.ids_with_screenshots) is has_screenshots

    return Predicate(
        "has_screenshots",
        matches,
        ReferenceRepository.screenshots_exist_clause(has_screenshots),
        needs_screenshot_ids=True,
    )


# PUBLIC_INTERFACE
def compile_request(request: SearchRequest, dialect: str) -> List[Predicate]:
    """
    Turns a SearchRequest into predicates, one per populated category.
    An empty request compiles to no predicates and matches everything.
    """
    predicates = []
    query = (request.query or "").strip()
    if query:
        predicates.append(_text_predicate(query, dialect))
    if request.tags:
        predicates.append(_tags_predicate(request.tags, dialect))
    if request.has_url is not None:
        predicates.append(_url_predicate(request.has_url))
    if request.has_screenshots is not None:
        predicates.append(_screenshots_predicate(request.has_screenshots))
    return predicates


# PUBLIC_INTERFACE
class QueryEngine:
    """Executes SearchRequests against a ReferenceRepository."""

    def __init__(self, repository: ReferenceRepository, strategy: str = "native"):
        if strategy not in ("native", "memory"):
            raise ValueError(f"Unknown search strategy: {strategy!r}")
        self.repository = repository
        self.strategy = strategy

    def search(self, request: SearchRequest) -> List[ReferenceOut]:
        predicates = compile_request(request, self.repository.dialect_name)
        logger.debug(
            "Search (%s) compiled to: %s",
            self.strategy,
            ", ".join(p.category for p in predicates) or "no predicates",
        )

        if self.strategy == "native":
            native = [p.clause for p in predicates if p.clause is not None]
            residual = [p for p in predicates if p.clause is None]
            rows = self.repository.execute(native)
        else:
            residual = predicates
            rows = self.repository.fetch_all()

        if residual:
            rows = self._filter(rows, residual)
        return [ReferenceOut.model_validate(row) for row in rows]

    def list_references(self) -> List[ReferenceOut]:
        return self.search(SearchRequest())

    def _filter(self, rows, predicates):
        ctx = SearchContext()
        if any(p.needs_screenshot_ids for p in predicates):
            ctx.ids_with_screenshots = self.repository.reference_ids_with_screenshots()
        # all() stops at the first failing predicate for each row
        return [row for row in rows if all(p.matches(row, ctx) for p in predicates)]
