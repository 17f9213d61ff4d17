# pocketledger/models.py
# lightweight entity classes (not bound to any storage backend)
import re
from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Tuple

INCOME_CATEGORIES = ["Salary", "Freelance", "Investment", "Other Income"]
EXPENSE_CATEGORIES = [
    "Food", "Transportation", "Entertainment", "Shopping",
    "Bills", "Healthcare", "Education", "Other Expense",
]
CATEGORIES = INCOME_CATEGORIES + EXPENSE_CATEGORIES

TRANSACTION_TYPES = ("income", "expense")
BUDGET_PERIODS = ("weekly", "monthly")
FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
ALERT_TYPES = ("budget_warning", "goal_milestone", "unusual_spending", "recurring_reminder")
ALERT_SEVERITIES = ("info", "warning", "error")

CONTRIBUTION_CATEGORY = "Other Expense"

DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"]


def categories_for(tx_type):
    """Categories allowed for a transaction type"""
    return INCOME_CATEGORIES if tx_type == "income" else EXPENSE_CATEGORIES


def utcnow():
    """Naive UTC timestamp, the form every store hands back"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value):
    """Parse a date from the formats clients send. Raises ValueError."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}")


def parse_datetime(value):
    """Parse a timestamp and normalise it to naive UTC. Raises ValueError."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        try:
            moment = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def parse_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def camel_case(name):
    return re.sub(r"_([a-z])", lambda m: m.group(1).upper(), name)


def _json_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class _Unset:
    def __repr__(self):
        return "UNSET"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __bool__(self):
        return False


UNSET = _Unset()


class Entity:
    """Conversions between dataclass entities, store records and JSON bodies.

    Store records use snake_case column names (the owner lives in
    ``user_id``); JSON bodies use the camelCase form of the column name.
    """

    columns: ClassVar[Dict[str, str]] = {"owner_id": "user_id"}
    date_fields: ClassVar[Tuple[str, ...]] = ()
    datetime_fields: ClassVar[Tuple[str, ...]] = ("created_at",)
    float_fields: ClassVar[Tuple[str, ...]] = ()
    bool_fields: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def column(cls, field_name):
        return cls.columns.get(field_name, field_name)

    @classmethod
    def json_key(cls, field_name):
        return camel_case(cls.column(field_name))

    @classmethod
    def coerce(cls, field_name, value):
        if value is None:
            return None
        if field_name in cls.date_fields:
            return parse_date(value)
        if field_name in cls.datetime_fields:
            return parse_datetime(value)
        if field_name in cls.float_fields:
            return float(value)
        if field_name in cls.bool_fields:
            return parse_bool(value)
        return value

    @classmethod
    def from_record(cls, record):
        kwargs = {}
        for f in fields(cls):
            column = cls.column(f.name)
            if column in record:
                kwargs[f.name] = cls.coerce(f.name, record[column])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, payload):
        kwargs = {}
        for f in fields(cls):
            key = cls.json_key(f.name)
            if key in payload:
                kwargs[f.name] = cls.coerce(f.name, payload[key])
        return cls(**kwargs)

    def to_record(self):
        return {self.column(f.name): getattr(self, f.name) for f in fields(self)}

    def to_json(self):
        return {self.json_key(f.name): _json_value(getattr(self, f.name)) for f in fields(self)}


@dataclass
class User(Entity):
    email: str
    password_hash: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    columns: ClassVar[Dict[str, str]] = {}

    def to_json(self):
        body = super().to_json()
        body.pop("passwordHash", None)
        return body


@dataclass
class Transaction(Entity):
    type: str
    amount: float
    category: str
    description: str
    date: date
    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None

    date_fields: ClassVar[Tuple[str, ...]] = ("date",)
    float_fields: ClassVar[Tuple[str, ...]] = ("amount",)


@dataclass
class Budget(Entity):
    category: str
    limit: float
    period: str = "monthly"
    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None

    float_fields: ClassVar[Tuple[str, ...]] = ("limit",)


@dataclass
class RecurringTransaction(Entity):
    type: str
    amount: float
    category: str
    frequency: str
    start_date: date
    description: str = ""
    end_date: Optional[date] = None
    last_run: Optional[datetime] = None
    is_active: bool = True
    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None

    date_fields: ClassVar[Tuple[str, ...]] = ("start_date", "end_date")
    datetime_fields: ClassVar[Tuple[str, ...]] = ("last_run", "created_at")
    float_fields: ClassVar[Tuple[str, ...]] = ("amount",)
    bool_fields: ClassVar[Tuple[str, ...]] = ("is_active",)


@dataclass
class SavingsGoal(Entity):
    name: str
    target_amount: float
    current_amount: float = 0.0
    deadline: Optional[date] = None
    category: Optional[str] = None
    description: Optional[str] = None
    is_completed: bool = False
    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None

    date_fields: ClassVar[Tuple[str, ...]] = ("deadline",)
    float_fields: ClassVar[Tuple[str, ...]] = ("target_amount", "current_amount")
    bool_fields: ClassVar[Tuple[str, ...]] = ("is_completed",)


@dataclass
class Alert(Entity):
    type: str
    title: str
    message: str
    severity: str
    is_read: bool = False
    metadata: Optional[Dict[str, Any]] = None
    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None

    bool_fields: ClassVar[Tuple[str, ...]] = ("is_read",)


class PartialUpdate:
    """Partial update: fields left as UNSET are not written."""

    entity: ClassVar[type] = Entity

    @classmethod
    def from_json(cls, payload):
        kwargs = {}
        for f in fields(cls):
            key = cls.entity.json_key(f.name)
            if key in payload:
                kwargs[f.name] = cls.entity.coerce(f.name, payload[key])
        return cls(**kwargs)

    def changes(self):
        """Set fields keyed by field name"""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def is_empty(self):
        return not self.changes()


@dataclass
class TransactionUpdate(PartialUpdate):
    type: Any = UNSET
    amount: Any = UNSET
    category: Any = UNSET
    description: Any = UNSET
    date: Any = UNSET

    entity: ClassVar[type] = Transaction


@dataclass
class BudgetUpdate(PartialUpdate):
    category: Any = UNSET
    limit: Any = UNSET
    period: Any = UNSET

    entity: ClassVar[type] = Budget


@dataclass
class RecurringTransactionUpdate(PartialUpdate):
    type: Any = UNSET
    amount: Any = UNSET
    category: Any = UNSET
    description: Any = UNSET
    frequency: Any = UNSET
    start_date: Any = UNSET
    end_date: Any = UNSET
    is_active: Any = UNSET
    last_run: Any = UNSET

    entity: ClassVar[type] = RecurringTransaction


@dataclass
class SavingsGoalUpdate(PartialUpdate):
    name: Any = UNSET
    target_amount: Any = UNSET
    current_amount: Any = UNSET
    deadline: Any = UNSET
    category: Any = UNSET
    description: Any = UNSET
    is_completed: Any = UNSET

    entity: ClassVar[type] = SavingsGoal
