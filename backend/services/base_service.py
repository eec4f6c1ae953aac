"""
base_service.py — Generic entity access
Owner-scoped CRUD built once over an ORM model and specialised per entity.
Only supplied fields are written; everything is parameterized.
"""

from collections.abc import Mapping

from pydantic import BaseModel
from sqlalchemy import select, update, delete, func, text

from database import RecordStore, utc_now
from models.enums import enum_value


class BaseService:
    model = None
    owner_column = "user_id"
    immutable_columns = ("id",)

    def __init__(self, store: RecordStore):
        self.store = store

    # ------------------------------------------------------------------
    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    @property
    def owner(self):
        return getattr(self.model, self.owner_column)

    def _select(self, *criteria, order_by=None):
        # populate_existing: rows changed by UPDATE/DELETE statements must not be served stale
        stmt = select(self.model).execution_options(populate_existing=True)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by is None:
            order_by = (self.model.created_at.desc(),)
        return stmt.order_by(*order_by)

    @staticmethod
    def _fields(record) -> dict:
        """Supplied fields of a pydantic payload (set fields only) or a mapping."""
        if record is None:
            return {}
        if isinstance(record, BaseModel):
            return record.model_dump(exclude_unset=True)
        if isinstance(record, Mapping):
            return {key: enum_value(value) for key, value in record.items()}
        raise TypeError(f"Expected a pydantic model or a mapping, got {type(record).__name__}")

    def _check_columns(self, fields: dict):
        columns = self.model.__table__.columns.keys()
        unknown = [key for key in fields if key not in columns]
        if unknown:
            raise ValueError(f"Unknown column(s) for {self.table_name}: {', '.join(sorted(unknown))}")

    def _prepare_update(self, fields: dict) -> dict:
        """Hook for entity-specific normalisation of a patch."""
        return fields

    def _prepare_create(self, fields: dict) -> dict:
        return fields

    # ------------------------------------------------------------------
    def find_all_by_owner(self, owner_id: str) -> list:
        """All records for an owner, newest first."""
        return self.store.scalars(self._select(self.owner == owner_id))

    def find_by_id(self, record_id: str):
        items = self.store.scalars(self._select(self.model.id == record_id))
        return items[0] if items else None

    def exists(self, record_id: str) -> bool:
        stmt = select(func.count()).select_from(self.model).where(self.model.id == record_id)
        return self.store.scalar(stmt) > 0

    def create(self, record):
        """Insert the supplied fields. On insert an absent or None field falls back
        to the column default; id and timestamps are generated when not given."""
        fields = {key: value for key, value in self._fields(record).items() if value is not None}
        self._check_columns(fields)
        fields = self._prepare_create(fields)
        return self.store.add(self.model(**fields))

    def update(self, record_id: str, patch) -> bool:
        """Write only the supplied fields. An explicit None writes NULL.
        Returns False when nothing was supplied or no row matched."""
        fields = self._fields(patch)
        if not fields:
            return False
        self._check_columns(fields)
        frozen = [key for key in fields if key in self.immutable_columns]
        if frozen:
            raise ValueError(f"Column(s) cannot be updated on {self.table_name}: {', '.join(frozen)}")

        fields = self._prepare_update(fields)
        if "updated_at" in self.model.__table__.columns and "updated_at" not in fields:
            fields["updated_at"] = utc_now()

        stmt = (
            update(self.model)
            .where(self.model.id == record_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        return self.store.execute(stmt) > 0

    def delete(self, record_id: str) -> bool:
        stmt = delete(self.model).where(self.model.id == record_id).execution_options(synchronize_session=False)
        return self.store.execute(stmt) > 0

    def delete_all_by_owner(self, owner_id: str) -> int:
        stmt = delete(self.model).where(self.owner == owner_id).execution_options(synchronize_session=False)
        return self.store.execute(stmt)

    def count_by_owner(self, owner_id: str) -> int:
        stmt = select(func.count()).select_from(self.model).where(self.owner == owner_id)
        return self.store.scalar(stmt)

    def find_where(self, clause, params: dict | None = None) -> list:
        """Records matching a SQLAlchemy expression or a text predicate with
        :named parameters, newest first."""
        if isinstance(clause, str):
            clause = text(clause)
            if params:
                clause = clause.bindparams(**params)
        return self.store.scalars(self._select(clause))

    def find_one_where(self, clause, params: dict | None = None):
        items = self.find_where(clause, params)
        return items[0] if items else None
