# backend/mentorship/repositories/base_repository.py
"""
Generic repository over one SQLAlchemy model.

Repositories flush but never commit; the owning service decides when a unit
of work ends. Every SQLAlchemy failure is re-raised as ``RepositoryException``
with the original error chained as ``__cause__``.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")


class BaseRepository(Generic[T]):
    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            self.logger.info("Integrity error while trying to %s %s: %s", action, self.model.__name__, exc.orig)
            raise RepositoryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Failed to %s %s: %s", action, self.model.__name__, exc)
            raise RepositoryException(f"Failed to {action} {self.model.__name__}: {exc}") from exc

    def get_by_id(self, id: str) -> Optional[T]:
        with self._guard("load"):
            return self.db.get(self.model, id)

    def create(self, **kwargs: Any) -> T:
        """
        Insert inside a savepoint.

        A constraint violation unwinds only the savepoint, so the caller can
        treat it as "already exists" (see ``integrity_violation``) and keep
        the rest of its unit of work.
        """
        entity = self.model(**kwargs)
        with self._guard("create"):
            with self.db.begin_nested():
                self.db.add(entity)
        return entity

    def flush(self) -> None:
        self.db.flush()

    def delete(self, id: str) -> bool:
        """Delete by primary key; False when nothing matched."""
        entity = self.get_by_id(id)
        if entity is None:
            return False
        with self._guard("delete"):
            self.db.delete(entity)
            self.db.flush()
        return True

    def count(self, **criteria: Any) -> int:
        with self._guard("count"):
            return self.db.query(self.model).filter_by(**criteria).count()

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        with self._guard("find"):
            return self.db.query(self.model).filter_by(**criteria).first()

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        with self._guard("query"):
            return query.all()


def integrity_violation(exc: RepositoryException) -> bool:
    """True when ``exc`` wraps a unique/foreign-key/check constraint failure."""
    return isinstance(exc.__cause__, IntegrityError)
