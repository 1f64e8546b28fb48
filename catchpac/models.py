from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, conint, constr

from shared.models_db import (
    Category,
    Maker,
    QuoteRequestTable,
    QuoteResponseTable,
    RequestStatus,
    UserRole,
    UserTable,
)

# Shown instead of the buyer's company on anonymous requests
ANONYMOUS_COMPANY_LABEL = "익명"

NonEmptyStr = constr(strip_whitespace=True, min_length=1)


# --- Accounts and sessions ---

class RegisterRequest(BaseModel):
    email: NonEmptyStr
    password: str
    passwordConfirm: str
    name: NonEmptyStr
    company: NonEmptyStr
    userType: UserRole = UserRole.BUYER


class LoginRequest(BaseModel):
    email: NonEmptyStr
    password: str


class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    company: str
    userType: UserRole
    isAdmin: bool = False

    @classmethod
    def from_table(cls, row: UserTable) -> "UserProfile":
        return cls(
            id=row.id,
            email=row.email,
            name=row.name,
            company=row.company,
            userType=row.role,
            isAdmin=row.is_admin,
        )


class SessionResponse(BaseModel):
    token: str
    expiresAt: datetime
    user: UserProfile


# --- Quote requests ---

class CreateQuoteRequest(BaseModel):
    category: Category
    maker: Maker
    partNumber: NonEmptyStr
    quantity: conint(ge=1)
    desiredDelivery: NonEmptyStr
    note: Optional[str] = None
    isAnonymous: bool = False


class CreatedResource(BaseModel):
    id: int


class QuoteRequestView(BaseModel):
    id: int
    buyerId: str
    buyerCompany: str
    category: Category
    maker: Maker
    partNumber: str
    quantity: int
    desiredDelivery: str
    note: Optional[str] = None
    status: RequestStatus
    isAnonymous: bool = False
    createdAt: datetime

    @classmethod
    def from_table(cls, row: QuoteRequestTable, mask_buyer: bool = False) -> "QuoteRequestView":
        buyer_company = row.buyer_company
        if mask_buyer and row.is_anonymous:
            buyer_company = ANONYMOUS_COMPANY_LABEL
        return cls(
            id=row.id,
            buyerId=row.buyer_id,
            buyerCompany=buyer_company,
            category=row.category,
            maker=row.maker,
            partNumber=row.part_number,
            quantity=row.quantity,
            desiredDelivery=row.desired_delivery,
            note=row.note,
            status=row.status,
            isAnonymous=row.is_anonymous,
            createdAt=row.created_at,
        )


class QuoteRequestListItem(QuoteRequestView):
    responseCount: int = 0


# --- Quote responses ---

class SubmitQuoteResponse(BaseModel):
    unitPrice: conint(gt=0)
    deliveryDays: conint(ge=1)
    inStock: bool = False
    note: Optional[str] = None


class QuoteResponseView(BaseModel):
    id: int
    requestId: int
    sellerId: str
    sellerCompany: str
    unitPrice: int
    totalPrice: int
    deliveryDays: int
    inStock: bool
    note: Optional[str] = None
    isSelected: bool = False
    createdAt: datetime

    @classmethod
    def from_table(cls, row: QuoteResponseTable) -> "QuoteResponseView":
        return cls(
            id=row.id,
            requestId=row.request_id,
            sellerId=row.seller_id,
            sellerCompany=row.seller_company,
            unitPrice=row.unit_price,
            totalPrice=row.total_price,
            deliveryDays=row.delivery_days,
            inStock=row.in_stock,
            note=row.note,
            isSelected=row.is_selected,
            createdAt=row.created_at,
        )


class SortBy(str, Enum):
    PRICE = "price"
    DELIVERY = "delivery"


class RankBadge(str, Enum):
    LOWEST_PRICE = "LOWEST_PRICE"
    FASTEST_DELIVERY = "FASTEST_DELIVERY"


class RankedQuoteResponse(QuoteResponseView):
    badge: Optional[RankBadge] = None


class QuoteRequestDetail(BaseModel):
    request: QuoteRequestView
    responses: List[RankedQuoteResponse]
    sortBy: SortBy = SortBy.PRICE
    isOwner: bool = False
    hasSubmitted: bool = False
    canSubmitQuote: bool = False


class SubmittedQuote(BaseModel):
    response: QuoteResponseView
    responses: List[QuoteResponseView] # Full re-fetch of the request's responses, newest first


class SellerQuote(QuoteResponseView):
    request: Optional[QuoteRequestView] = None


# --- Aggregate pricing ---

class CategoryPrice(BaseModel):
    category: Category
    avgPrice: int
    changePercent: int
    avgDeliveryDays: int
    sampleCount: int = Field(..., ge=1)
