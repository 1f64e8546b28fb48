from sqlmodel import Field, SQLModel, Column
from sqlalchemy import DateTime, Enum as SQLAlchemyEnum, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from datetime import datetime, timezone
from typing import Optional
from enum import Enum

# DO NOT import from catchpac here to avoid circular dependencies.
# Validation happens at the API layer (catchpac.models) before DB interaction.


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored in UTC.

    Backends without a zone-aware column type (SQLite) hand back naive values;
    those are UTC and get tzinfo attached on load. Naive values on the way in
    are taken as UTC as well.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def utc_timestamp_column(index: bool = False) -> Column:
    return Column(UTCDateTime(timezone=True), nullable=False, index=index)


class UserRole(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"

class RequestStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED" # Terminal, reached only by selecting a response

# Fixed part categories offered on the request form and used by the pricing rollup
class Category(str, Enum):
    SERVO_MOTOR = "서보모터"
    SERVO_DRIVE = "서보드라이브"
    INVERTER = "인버터"
    PLC = "PLC"
    HMI = "HMI"
    SENSOR = "센서"
    REDUCER = "감속기"
    PNEUMATIC = "공압부품"

class Maker(str, Enum):
    MITSUBISHI = "Mitsubishi"
    SIEMENS = "Siemens"
    OMRON = "Omron"
    LS_ELECTRIC = "LS Electric"
    YASKAWA = "Yaskawa"
    PANASONIC = "Panasonic"
    FANUC = "Fanuc"
    OTHER = "기타"


class UserTable(SQLModel, table=True):
    __tablename__ = "users"
    # The identity provider's user id doubles as the profile key
    id: str = Field(primary_key=True)
    email: str = Field(index=True)
    name: str
    company: str
    role: UserRole = Field(sa_column=Column(SQLAlchemyEnum(UserRole, name="userrole", create_type=True), nullable=False))
    is_admin: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_timestamp_column())


class SessionTable(SQLModel, table=True):
    __tablename__ = "user_sessions"
    token: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_timestamp_column())
    expires_at: datetime = Field(sa_column=utc_timestamp_column())


class QuoteRequestBase(SQLModel):
    buyer_id: str = Field(foreign_key="users.id", index=True)
    buyer_company: str # Denormalized from the buyer's profile at creation time
    category: Category
    maker: Maker
    part_number: str
    quantity: int
    desired_delivery: str
    note: Optional[str] = None
    status: RequestStatus = Field(
        default=RequestStatus.OPEN,
        sa_column=Column(SQLAlchemyEnum(RequestStatus, name="requeststatus", create_type=True), nullable=False, index=True)
    )
    is_anonymous: bool = Field(default=False)

class QuoteRequestTable(QuoteRequestBase, table=True):
    __tablename__ = "quote_requests"
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_timestamp_column(index=True))


class QuoteResponseBase(SQLModel):
    request_id: int = Field(foreign_key="quote_requests.id", index=True)
    seller_id: str = Field(foreign_key="users.id", index=True)
    seller_company: str # Denormalized
    unit_price: int
    total_price: int # unit_price * request.quantity at submission, never recomputed
    delivery_days: int
    in_stock: bool = Field(default=False)
    note: Optional[str] = None
    is_selected: bool = Field(default=False)

class QuoteResponseTable(QuoteResponseBase, table=True):
    __tablename__ = "quote_responses"
    # One response per seller per request
    __table_args__ = (UniqueConstraint("request_id", "seller_id", name="uq_quote_responses_request_seller"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=utc_timestamp_column(index=True))
