# backend/storage/sqlalchemy_store.py
import logging
import os
import threading
import uuid
from contextlib import contextmanager

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, String, UniqueConstraint, create_engine, inspect,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from pocketledger.errors import StorageError
from pocketledger.models import utcnow

from .base import ALERTS, BUDGETS, GOALS, RECURRING, TRANSACTIONS, USERS, RecordStore

logger = logging.getLogger("pocketledger-store")

Base = declarative_base()


def _new_id():
    return uuid.uuid4().hex


# --- Models ---

class UserRow(Base):
    __tablename__ = USERS

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String)
    created_at = Column(DateTime, default=utcnow)


class TransactionRow(Base):
    __tablename__ = TRANSACTIONS

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    description = Column(String, default="")
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class BudgetRow(Base):
    __tablename__ = BUDGETS

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    category = Column(String, nullable=False)
    limit = Column(Float, nullable=False)
    period = Column(String, nullable=False, default="monthly")
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (UniqueConstraint("user_id", "category", name="uq_budget_owner_category"),)


class RecurringTransactionRow(Base):
    __tablename__ = RECURRING

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    description = Column(String, default="")
    frequency = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    last_run = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)


class SavingsGoalRow(Base):
    __tablename__ = GOALS

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, default=0.0)
    deadline = Column(Date, nullable=True)
    category = Column(String, nullable=True)
    description = Column(String, nullable=True)
    is_completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


class AlertRow(Base):
    __tablename__ = ALERTS

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    is_read = Column(Boolean, default=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, key="meta", nullable=True)
    created_at = Column(DateTime, default=utcnow)


MODELS = {
    USERS: UserRow,
    TRANSACTIONS: TransactionRow,
    BUDGETS: BudgetRow,
    RECURRING: RecurringTransactionRow,
    GOALS: SavingsGoalRow,
    ALERTS: AlertRow,
}


def _column_attributes(model):
    """(column name, mapped attribute name) pairs; they differ for alerts.metadata"""
    return [(prop.columns[0].name, prop.key) for prop in inspect(model).column_attrs]


def _attribute_name(model, column_name):
    for name, key in _column_attributes(model):
        if name == column_name:
            return key
    return column_name


def _attributes(model, values):
    """Map column names onto mapped attribute names"""
    return {_attribute_name(model, name): value for name, value in values.items()}


def row_to_dict(row):
    return {name: getattr(row, key) for name, key in _column_attributes(type(row))}


class SqlAlchemyRecordStore(RecordStore):
    """ORM-backed store (SQLite locally, any SQLAlchemy URL in production)."""

    supports_transactions = True

    def __init__(self, database_url="sqlite:///data/pocketledger.db", echo=False):
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                self.engine = create_engine(database_url, connect_args=connect_args,
                                            poolclass=StaticPool, echo=echo)
            else:
                path = database_url.replace("sqlite:///", "", 1)
                if os.path.dirname(path):
                    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
                self.engine = create_engine(database_url, connect_args=connect_args, echo=echo)
        else:
            self.engine = create_engine(database_url, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False,
                                         expire_on_commit=False)
        self._local = threading.local()
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"SQLAlchemy store ready on {self.engine.url.drivername}")

    # --- session handling ---

    @contextmanager
    def _session(self):
        session = getattr(self._local, "session", None)
        if session is not None:
            # inside atomic(): the outer block commits or rolls back
            try:
                yield session
                session.flush()
            except SQLAlchemyError as e:
                raise StorageError(str(e)) from e
            return

        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store operation failed: {e}")
            raise StorageError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def atomic(self):
        if getattr(self._local, "session", None) is not None:
            yield self
            return
        session = self.SessionLocal()
        self._local.session = session
        try:
            yield self
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            self._local.session = None
            session.close()

    # --- RecordStore ---

    def _query(self, session, table, owner_id=None, where=None, ids=None):
        model = MODELS[table]
        query = session.query(model)
        if owner_id is not None:
            query = query.filter(model.user_id == owner_id)
        for name, value in _attributes(model, where or {}).items():
            query = query.filter(getattr(model, name) == value)
        if ids is not None:
            query = query.filter(model.id.in_(list(ids)))
        return query

    def insert(self, table, values):
        model = MODELS[table]
        with self._session() as session:
            row = model(**_attributes(model, values))
            session.add(row)
            session.flush()
            return row_to_dict(row)

    def get(self, table, record_id):
        with self._session() as session:
            row = session.get(MODELS[table], record_id)
            return row_to_dict(row) if row is not None else None

    def select(self, table, owner_id=None, where=None, order_by="created_at",
               descending=True, limit=None):
        model = MODELS[table]
        with self._session() as session:
            query = self._query(session, table, owner_id, where)
            if order_by:
                column = getattr(model, _attribute_name(model, order_by))
                query = query.order_by(column.desc() if descending else column.asc())
            if limit:
                query = query.limit(limit)
            return [row_to_dict(row) for row in query.all()]

    def update(self, table, record_id, changes):
        model = MODELS[table]
        with self._session() as session:
            row = session.get(model, record_id)
            if row is None:
                raise StorageError(f"{table} {record_id} vanished during update")
            for name, value in _attributes(model, changes).items():
                setattr(row, name, value)
            session.flush()
            return row_to_dict(row)

    def delete(self, table, record_id):
        with self._session() as session:
            row = session.get(MODELS[table], record_id)
            if row is not None:
                session.delete(row)

    def update_many(self, table, owner_id, changes, ids=None, where=None):
        model = MODELS[table]
        with self._session() as session:
            rows = self._query(session, table, owner_id, where, ids).all()
            for row in rows:
                for name, value in _attributes(model, changes).items():
                    setattr(row, name, value)
            return len(rows)

    def delete_many(self, table, owner_id, ids=None):
        with self._session() as session:
            rows = self._query(session, table, owner_id, ids=ids).all()
            for row in rows:
                session.delete(row)
            return len(rows)

    def upsert(self, table, owner_id, key, values):
        model = MODELS[table]
        with self._session() as session:
            row = self._query(session, table, owner_id, where=key).first()
            if row is None:
                row = model(**_attributes(model, dict(values, user_id=owner_id, **key)))
                session.add(row)
            else:
                for name, value in _attributes(model, values).items():
                    setattr(row, name, value)
            session.flush()
            return row_to_dict(row)
