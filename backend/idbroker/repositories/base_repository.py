# backend/idbroker/repositories/base_repository.py
"""
Base Repository Pattern for the identity broker.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Transaction support (managed by services)
- Translation of integrity errors into named uniqueness violations

Repositories never commit on their own except inside ``transaction()``.
"""

from contextlib import contextmanager
import logging
import re
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException, UniqueConstraintViolation

T = TypeVar("T")

logger = logging.getLogger(__name__)

_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: ([\w.]+)")


def unique_constraint_name(exc: IntegrityError) -> Optional[str]:
    """
    Name of the uniqueness constraint an IntegrityError violated, if any.

    PostgreSQL drivers expose it on ``diag``; SQLite only reports
    ``table.column`` so the name is rebuilt from the naming convention.
    """
    diag = getattr(exc.orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name:
        return str(constraint_name)
    match = _SQLITE_UNIQUE_RE.search(str(exc.orig))
    if match:
        return f"{match.group(1).replace('.', '_')}_key"
    return None


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Context manager that commits/rolls back the underlying session."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error("Repository transaction failed: %s", exc)
            self.db.rollback()
            raise RepositoryException(f"Transaction failed: {exc}") from exc
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.

        Raises:
            UniqueConstraintViolation: a uniqueness constraint rejected the row
            RepositoryException: any other store failure
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc.orig)
            self.db.rollback()
            raise UniqueConstraintViolation(unique_constraint_name(exc)) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def get_all(self) -> List[T]:
        """All rows of the model in primary key order."""
        try:
            return self._build_query().order_by(*self.model.__mapper__.primary_key).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to list {self.model.__name__}: {str(e)}")

    def update(self, entity: T, **kwargs: Any) -> T:
        """
        Apply field changes to a loaded entity and flush them.

        Raises:
            UniqueConstraintViolation: a uniqueness constraint rejected the change
            RepositoryException: any other store failure
        """
        for field, value in kwargs.items():
            setattr(entity, field, value)
        try:
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error updating %s: %s", self.model.__name__, exc.orig)
            self.db.rollback()
            raise UniqueConstraintViolation(unique_constraint_name(exc)) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        """Find a single entity by exact-match criteria."""
        try:
            return self._build_query().filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding one by criteria: {str(e)}")
            raise RepositoryException(f"Failed to find record: {str(e)}")

    def _build_query(self) -> Query:
        """Get base query for the model."""
        return self.db.query(self.model)

    @property
    def dialect_name(self) -> str:
        bind = self.db.get_bind()
        return bind.dialect.name

    def _upsert(
        self,
        model: Any,
        values: Dict[str, Any],
        conflict_columns: List[str],
        update_values: Optional[Dict[str, Any]],
    ) -> None:
        """
        Single-statement INSERT ... ON CONFLICT.

        ``model`` is a mapped class or a Table; without ``update_values`` an
        existing row is left as it is.
        """
        if self.dialect_name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif self.dialect_name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise RepositoryException(f"Upsert is not supported on {self.dialect_name}")
        target_name = getattr(model, "__name__", None) or getattr(model, "name", "table")
        stmt = insert(model).values(**values)
        if update_values:
            stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=update_values)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
        try:
            self.db.execute(stmt)
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise UniqueConstraintViolation(unique_constraint_name(exc)) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error upserting {target_name}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to upsert {target_name}: {str(e)}")
