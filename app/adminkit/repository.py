"""Generic repository over any model that embeds the audit envelope.

BaseRepository[T] gives every entity the same list/get/create/update/delete
contract:

  - soft-deleted rows (deleted_at IS NOT NULL) are invisible to every read;
  - actor ids are explicit arguments, never taken from the payload;
  - soft delete is a single UPDATE (deleted_at + deleted_by together);
  - sort columns are allow-listed per repository, anything else falls back to id;
  - storage exceptions are logged here and surfaced as PersistenceError.

Repositories flush but never commit. The calling service owns the transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

from sqlalchemy import Boolean, func, inspect as sa_inspect, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.adminkit.errors import AppError, DuplicateRecord, MissingActor, NotFound, PersistenceError
from app.adminkit.listing import DEFAULT_SORT_BY, ListParams
from app.adminkit.models import AUDIT_COLUMNS, AuditMixin, utcnow
from app.adminkit.search import name_filter

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=AuditMixin)

_TRUE_VALUES = ("1", "true", "yes", "on", "active")
_FALSE_VALUES = ("0", "false", "no", "off", "inactive", "passive")


class BaseRepository(Generic[T]):
    """Type-parameterized data access for one audited model."""

    model: type[T]

    allowed_sort_columns: frozenset[str] = frozenset({"id", "created_at"})

    # list filter -> model attribute; filters with no mapping are ignored.
    filter_columns: Mapping[str, str] = {"name": "name", "status": "status", "type": "type"}

    def __init__(self, s: Session, model: type[T] | None = None) -> None:
        if model is not None:
            self.model = model
        if getattr(self, "model", None) is None:
            raise TypeError(f"{type(self).__name__} needs a model class")
        self.s = s
        self._columns = sa_inspect(self.model).columns
        self._allowed_sort: set[str] = set()
        self.set_allowed_sort_columns(self.allowed_sort_columns)

    # ---------- configuration ----------
    def set_allowed_sort_columns(self, columns) -> None:
        unknown = [c for c in columns if c not in self._columns]
        if unknown:
            raise ValueError(f"{self.model.__name__} has no sortable column(s): {', '.join(unknown)}")
        self._allowed_sort = set(columns) | {DEFAULT_SORT_BY}

    # ---------- helpers ----------
    @contextmanager
    def _guard(self, action: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except AppError:
            raise
        except IntegrityError as e:
            logger.warning("%s.%s integrity violation %s: %s", self.model.__name__, action, context, e.orig)
            raise DuplicateRecord() from e
        except SQLAlchemyError as e:
            logger.exception("%s.%s failed %s", self.model.__name__, action, context)
            raise PersistenceError() from e

    def _live(self):
        return self.model.deleted_at.is_(None)

    def _column(self, key: str):
        if key not in self._columns:
            raise ValueError(f"{self.model.__name__} has no column '{key}'")
        return getattr(self.model, key)

    def _conditions(self, condition: Mapping[str, Any]) -> list:
        clauses = []
        for key, value in condition.items():
            col = self._column(key)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(col.in_(list(value)))
            elif value is None:
                clauses.append(col.is_(None))
            else:
                clauses.append(col == value)
        return clauses

    def _coerce(self, key: str, raw: str) -> Any:
        if isinstance(self._columns[key].type, Boolean):
            v = raw.strip().lower()
            if v in _TRUE_VALUES:
                return True
            if v in _FALSE_VALUES:
                return False
            return None
        return raw

    def _list_filters(self, params: ListParams) -> list:
        clauses = []
        name_attr = self.filter_columns.get("name")
        if params.name and name_attr and name_attr in self._columns:
            clauses.append(name_filter(self._column(name_attr), params.name))
        for param_key in ("status", "type"):
            raw = getattr(params, param_key)
            attr = self.filter_columns.get(param_key)
            if not raw or not attr or attr not in self._columns:
                continue
            value = self._coerce(attr, raw)
            if value is None:
                continue
            clauses.append(self._column(attr) == value)
        return clauses

    def _clean_values(self, data: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key in AUDIT_COLUMNS:
                raise ValueError(f"Audit column '{key}' cannot be set through update data")
            self._column(key)
            values[key] = value
        return values

    def _stamp_new(self, entity: T, actor_id: int | None) -> None:
        now = utcnow()
        actor = actor_id or None
        entity.created_at = now
        entity.updated_at = now
        entity.created_by = actor
        entity.updated_by = actor
        entity.deleted_at = None
        entity.deleted_by = None

    # ---------- reads ----------
    def list(self, params: ListParams) -> tuple[list[T], int]:
        params = params.normalized()
        filters = [self._live(), *self._list_filters(params)]

        with self._guard("list", params=params):
            total = self.s.scalar(select(func.count()).select_from(self.model).where(*filters)) or 0
            if total == 0:
                return [], 0

            sort_by = params.sort_by if params.sort_by in self._allowed_sort else DEFAULT_SORT_BY
            ascending = params.order_by == "asc"
            sort_col = getattr(self.model, sort_by)
            order = [sort_col.asc() if ascending else sort_col.desc()]
            if sort_by != "id":
                order.append(self.model.id.asc() if ascending else self.model.id.desc())

            stmt = (
                select(self.model)
                .where(*filters)
                .order_by(*order)
                .offset(params.offset)
                .limit(params.per_page)
            )
            items = list(self.s.scalars(stmt).all())
        return items, total

    def get_by_id(self, id: int) -> T:
        with self._guard("get_by_id", id=id):
            stmt = select(self.model).where(self.model.id == id, self._live())
            entity = self.s.scalars(stmt).first()
        if entity is None:
            raise NotFound()
        return entity

    def count(self) -> int:
        with self._guard("count"):
            return self.s.scalar(select(func.count()).select_from(self.model).where(self._live())) or 0

    def count_by(self, condition: Mapping[str, Any]) -> int:
        clauses = self._conditions(condition)
        with self._guard("count_by", condition=dict(condition)):
            stmt = select(func.count()).select_from(self.model).where(self._live(), *clauses)
            return self.s.scalar(stmt) or 0

    # ---------- writes ----------
    def create(self, entity: T, actor_id: int | None = None) -> T:
        self._stamp_new(entity, actor_id)
        with self._guard("create", actor_id=actor_id):
            self.s.add(entity)
            self.s.flush()
        return entity

    def bulk_create(
        self,
        entities: Sequence[T],
        actor_id: int | None = None,
        *,
        stop_on_error: bool = True,
    ) -> list[tuple[int, AppError]]:
        """
        Create each entity inside its own SAVEPOINT.

        Raises the first failure when ``stop_on_error`` (rows created before it
        stay in the outer transaction); otherwise returns ``(index, error)``
        pairs for the rows that failed.
        """
        failures: list[tuple[int, AppError]] = []
        for idx, entity in enumerate(entities):
            try:
                with self._guard("bulk_create", index=idx, actor_id=actor_id):
                    with self.s.begin_nested():
                        self._stamp_new(entity, actor_id)
                        self.s.add(entity)
                        self.s.flush()
            except AppError as e:
                if stop_on_error:
                    raise
                failures.append((idx, e))
        return failures

    def update(self, id: int, data: Mapping[str, Any], actor_id: int | None = None) -> None:
        values = self._clean_values(data)
        values["updated_at"] = utcnow()
        if actor_id:
            values["updated_by"] = actor_id
        with self._guard("update", id=id, actor_id=actor_id):
            stmt = update(self.model).where(self.model.id == id, self._live()).values(**values)
            result = self.s.execute(stmt)
        if result.rowcount == 0:
            raise NotFound()

    def bulk_update(self, condition: Mapping[str, Any], data: Mapping[str, Any], actor_id: int | None = None) -> int:
        if not condition:
            raise ValueError("bulk_update requires a condition")
        clauses = self._conditions(condition)
        values = self._clean_values(data)
        values["updated_at"] = utcnow()
        if actor_id:
            values["updated_by"] = actor_id
        with self._guard("bulk_update", condition=dict(condition), actor_id=actor_id):
            stmt = update(self.model).where(self._live(), *clauses).values(**values)
            return self.s.execute(stmt).rowcount

    def _soft_delete(self, clauses: list, actor_id: int | None, action: str, **context: Any) -> int:
        if not actor_id:
            raise MissingActor()
        now = utcnow()
        with self._guard(action, actor_id=actor_id, **context):
            stmt = (
                update(self.model)
                .where(self._live(), *clauses)
                .values(deleted_at=now, deleted_by=actor_id, updated_at=now, updated_by=actor_id)
            )
            return self.s.execute(stmt).rowcount

    def delete(self, id: int, actor_id: int | None) -> None:
        if self._soft_delete([self.model.id == id], actor_id, "delete", id=id) == 0:
            raise NotFound()

    def bulk_delete(self, condition: Mapping[str, Any], actor_id: int | None) -> int:
        if not condition:
            raise ValueError("bulk_delete requires a condition")
        return self._soft_delete(self._conditions(condition), actor_id, "bulk_delete", condition=dict(condition))

    def bulk_delete_ids(self, ids: Sequence[int], actor_id: int | None) -> int:
        if not ids:
            if not actor_id:
                raise MissingActor()
            return 0
        return self._soft_delete([self.model.id.in_(list(ids))], actor_id, "bulk_delete_ids", ids=list(ids))
