from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from catchpac.models import CreateQuoteRequest, SubmitQuoteResponse # Pydantic models for data transfer
from shared.models_db import (
    QuoteRequestTable,
    QuoteResponseTable,
    RequestStatus,
    SessionTable,
    UserRole,
    UserTable,
) # DB Models

class AbstractRepository(ABC):
    """Abstract interface for data persistence operations. Implementations flush; services commit."""

    # --- users ---

    @abstractmethod
    async def add_user(self, user_id: str, email: str, name: str, company: str, role: UserRole) -> UserTable:
        """Saves a new user profile keyed by the identity provider's user id."""
        raise NotImplementedError

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[UserTable]:
        raise NotImplementedError

    @abstractmethod
    async def find_users_by_email(self, email: str) -> List[UserTable]:
        """Returns every profile whose email matches exactly."""
        raise NotImplementedError

    @abstractmethod
    async def set_admin_flag(self, user_id: str, is_admin: bool) -> Optional[UserTable]:
        raise NotImplementedError

    # --- sessions ---

    @abstractmethod
    async def add_session(self, token: str, user_id: str, expires_at: datetime) -> SessionTable:
        raise NotImplementedError

    @abstractmethod
    async def get_session(self, token: str) -> Optional[SessionTable]:
        raise NotImplementedError

    @abstractmethod
    async def delete_session(self, token: str) -> None:
        raise NotImplementedError

    # --- quote requests ---

    @abstractmethod
    async def add_quote_request(self, buyer_id: str, buyer_company: str, request_data: CreateQuoteRequest) -> QuoteRequestTable:
        """Saves a new OPEN quote request."""
        raise NotImplementedError

    @abstractmethod
    async def get_quote_request(self, request_id: int) -> Optional[QuoteRequestTable]:
        raise NotImplementedError

    @abstractmethod
    async def list_quote_requests(
        self, buyer_id: Optional[str] = None, status: Optional[RequestStatus] = None
    ) -> List[QuoteRequestTable]:
        """Returns requests matching the given equality filters, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def close_quote_request(self, request_id: int) -> bool:
        """Moves the request from OPEN to CLOSED. False when it was not OPEN (or does not exist)."""
        raise NotImplementedError

    # --- quote responses ---

    @abstractmethod
    async def add_quote_response(
        self, request: QuoteRequestTable, seller_id: str, seller_company: str, response_data: SubmitQuoteResponse
    ) -> QuoteResponseTable:
        """Saves a new response; total price is unit price times the request's quantity."""
        raise NotImplementedError

    @abstractmethod
    async def get_quote_response(self, response_id: int) -> Optional[QuoteResponseTable]:
        raise NotImplementedError

    @abstractmethod
    async def list_quote_responses(
        self, request_id: Optional[int] = None, seller_id: Optional[str] = None
    ) -> List[QuoteResponseTable]:
        """Returns responses matching the given equality filters, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def count_quote_responses(self, request_id: int) -> int:
        raise NotImplementedError

    @abstractmethod
    async def mark_quote_response_selected(self, response_id: int) -> Optional[QuoteResponseTable]:
        raise NotImplementedError

    @abstractmethod
    async def list_request_categories(self) -> dict:
        """Maps every quote request id to its category."""
        raise NotImplementedError


class AbstractIdentityProvider(ABC):
    """Opaque email/password credential service producing stable user ids."""

    @abstractmethod
    async def create_account(self, email: str, password: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def verify_credentials(self, email: str, password: str) -> str:
        raise NotImplementedError
