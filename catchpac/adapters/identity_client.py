import httpx
from typing import Dict, Any, Optional
import json

from catchpac.service.ports import AbstractIdentityProvider
from catchpac.service.errors import IdentityError, IdentityErrorCode, WRONG_PASSWORD_MESSAGE
from shared.settings import settings
from shared.logging import get_logger

logger = get_logger(__name__)

# Provider error messages (the part before any " : " detail) to our error codes
PROVIDER_ERROR_CODES: Dict[str, IdentityErrorCode] = {
    "EMAIL_EXISTS": IdentityErrorCode.EMAIL_IN_USE,
    "INVALID_EMAIL": IdentityErrorCode.INVALID_EMAIL,
    "MISSING_EMAIL": IdentityErrorCode.INVALID_EMAIL,
    "WEAK_PASSWORD": IdentityErrorCode.WEAK_PASSWORD,
    "EMAIL_NOT_FOUND": IdentityErrorCode.USER_NOT_FOUND,
    "INVALID_PASSWORD": IdentityErrorCode.INVALID_CREDENTIAL,
    "INVALID_LOGIN_CREDENTIALS": IdentityErrorCode.INVALID_CREDENTIAL,
    "MISSING_PASSWORD": IdentityErrorCode.INVALID_CREDENTIAL,
}

# Provider errors that keep their own user-facing message instead of the code's default
PROVIDER_ERROR_MESSAGES: Dict[str, str] = {
    "INVALID_PASSWORD": WRONG_PASSWORD_MESSAGE,
}


def _provider_error_key(message: str) -> str:
    return message.split(":", 1)[0].strip().upper()


def map_provider_error(message: str) -> Optional[IdentityErrorCode]:
    """Maps e.g. 'WEAK_PASSWORD : Password should be at least 6 characters' to WEAK_PASSWORD."""
    return PROVIDER_ERROR_CODES.get(_provider_error_key(message))


class IdentityToolkitClient(AbstractIdentityProvider):
    """
    Client for the Google Identity Toolkit REST API (email/password accounts).
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        """
        Args:
            base_url: API root, e.g. https://identitytoolkit.googleapis.com/v1
            api_key: Web API key sent as the `key` query parameter.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = (base_url or settings.IDENTITY_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.IDENTITY_API_KEY
        self.timeout = timeout if timeout is not None else settings.IDENTITY_TIMEOUT_SECONDS

    async def create_account(self, email: str, password: str) -> str:
        data = await self._post("accounts:signUp", {"email": email, "password": password, "returnSecureToken": True})
        return self._user_id(data)

    async def verify_credentials(self, email: str, password: str) -> str:
        data = await self._post(
            "accounts:signInWithPassword", {"email": email, "password": password, "returnSecureToken": True}
        )
        return self._user_id(data)

    def _user_id(self, data: Dict[str, Any]) -> str:
        user_id = data.get("localId")
        if not user_id:
            logger.error("Identity provider response is missing localId")
            raise IdentityError(None, "missing localId")
        return user_id

    async def _post(self, action: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Calls one Identity Toolkit action.

        Returns:
            The decoded JSON body of a successful response.

        Raises:
            IdentityError: for provider rejections (with a mapped code when known),
                network failures and malformed responses (code None).
        """
        url = f"{self.base_url}/{action}"
        params = {"key": self.api_key} if self.api_key else None
        logger.info(f"Calling identity provider action {action}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(url, params=params, json=body)
            except httpx.RequestError as e: # Network errors, timeouts, etc.
                logger.error(f"RequestError during identity call {action}: {e}")
                raise IdentityError(None, str(e)) from e

        try:
            response_data = response.json()
        except json.JSONDecodeError as e:
            logger.error(f"Identity provider returned non-JSON body for {action} (HTTP {response.status_code}): {response.text}")
            raise IdentityError(None, f"HTTP {response.status_code}") from e

        if response.is_success:
            return response_data

        provider_message = ""
        if isinstance(response_data, dict):
            provider_message = (response_data.get("error") or {}).get("message", "")
        identity_code = map_provider_error(provider_message)
        if identity_code is None:
            logger.error(f"Identity provider error for {action} (HTTP {response.status_code}): {provider_message or response.text}")
        else:
            logger.warning(f"Identity provider rejected {action}: {provider_message}")
        raise IdentityError(identity_code, provider_message, PROVIDER_ERROR_MESSAGES.get(_provider_error_key(provider_message)))
