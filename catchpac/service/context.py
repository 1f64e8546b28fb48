from dataclasses import dataclass

from shared.models_db import UserRole, UserTable


@dataclass(frozen=True)
class UserContext:
    """The signed-in user, resolved from a session token and passed explicitly to every service call."""

    user_id: str
    email: str
    name: str
    company: str
    role: UserRole
    is_admin: bool
    session_token: str

    @property
    def is_buyer(self) -> bool:
        return self.role == UserRole.BUYER

    @property
    def is_seller(self) -> bool:
        return self.role == UserRole.SELLER

    @classmethod
    def from_user(cls, user: UserTable, session_token: str) -> "UserContext":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            company=user.company,
            role=user.role,
            is_admin=user.is_admin,
            session_token=session_token,
        )
