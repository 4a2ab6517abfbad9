"""
Backing Store
=============

A thin document-store facade over a SQLAlchemy session. The lifecycle managers
only talk to this class, which keeps filtering, sorting, pagination and the
free-text predicate in one place and turns driver failures into `StoreError`.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import String, cast, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreError

logger = logging.getLogger(__name__)

DEFAULT_TEXT_FIELDS = ("title", "description", "location")


def json_list_contains(column, value: str):
    """Membership test for a JSON list of strings that works on SQLite and PostgreSQL."""
    return cast(column, String).like(f'%"{value}"%')


class DocumentStore:
    """Filter / sort / paginate access to one mapped model."""

    def __init__(self, db: Session, model, text_fields: Sequence[str] = DEFAULT_TEXT_FIELDS):
        self.db = db
        self.model = model
        self.text_fields = tuple(text_fields)

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store {operation} failed on {self.model.__tablename__}: {e}")
            raise StoreError() from e

    def text_predicate(self, search: str):
        """Match any search term against any text field (case-insensitive)."""
        terms = [t for t in search.split() if t]
        clauses = []
        for term in terms:
            pattern = f"%{term}%"
            for field in self.text_fields:
                clauses.append(getattr(self.model, field).ilike(pattern))
        return or_(*clauses) if clauses else None

    def _query(self, filters: Optional[Dict[str, Any]], search: Optional[str], criteria: Iterable):
        query = self.db.query(self.model)
        for field, value in (filters or {}).items():
            column = getattr(self.model, field)
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        if search:
            predicate = self.text_predicate(search)
            if predicate is not None:
                query = query.filter(predicate)
        for criterion in criteria:
            query = query.filter(criterion)
        return query

    def find(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Sequence = (),
        skip: int = 0,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        criteria: Iterable = (),
    ) -> Tuple[List[Any], int]:
        """Return one page of records plus the total count for the same filter."""
        criteria = list(criteria)
        with self._guard("find"):
            query = self._query(filters, search, criteria)
            total = query.count()
            if order_by:
                query = query.order_by(*order_by)
            if skip:
                query = query.offset(skip)
            if limit is not None:
                query = query.limit(limit)
            return query.all(), total

    def count(self, filters: Optional[Dict[str, Any]] = None, criteria: Iterable = ()) -> int:
        with self._guard("count"):
            return self._query(filters, None, list(criteria)).count()

    def find_by_id(self, record_id: str):
        with self._guard("find_by_id"):
            return self.db.query(self.model).filter(self.model.id == record_id).first()

    def create(self, values: Dict[str, Any]):
        with self._guard("create"):
            record = self.model(**values)
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
            return record

    def update_by_id(self, record_id: str, values: Dict[str, Any]):
        with self._guard("update_by_id"):
            record = self.db.query(self.model).filter(self.model.id == record_id).first()
            if record is None:
                return None
            for field, value in values.items():
                setattr(record, field, value)
            self.db.commit()
            self.db.refresh(record)
            return record

    def update_where(self, record_id: str, conditions: Dict[str, Any], values: Dict[str, Any]) -> bool:
        """
        Single conditional write: apply `values` only if the row still matches
        `conditions`. Returns False when no row matched.
        """
        with self._guard("update_where"):
            query = self.db.query(self.model).filter(self.model.id == record_id)
            for field, expected in conditions.items():
                query = query.filter(getattr(self.model, field) == expected)
            updated = query.update(values, synchronize_session=False)
            self.db.commit()
            return updated == 1

    def delete_by_id(self, record_id: str) -> bool:
        with self._guard("delete_by_id"):
            deleted = self.db.query(self.model).filter(self.model.id == record_id).delete(
                synchronize_session=False
            )
            self.db.commit()
            return deleted > 0
