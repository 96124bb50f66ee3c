"""
HTTP client for the commerce backend.

Wraps ``httpx.AsyncClient``: attaches the bearer token of the injected session,
decodes JSON, and turns every failure into an ``ApiError``. A 401 clears the
session before ``Unauthorized`` is raised.
"""
from typing import Any, Dict, Optional

import httpx

from ECommerceAdmin.config import Config
from ECommerceAdmin.exceptions import ApiError, NoResponse, NotFound, Unauthorized
from ECommerceAdmin.logger import get_logger
from ECommerceAdmin.models import SessionContext

logger = get_logger("client")

GENERIC_ERROR = "Something went wrong"
NO_RESPONSE_ERROR = "No response from server. Please check your connection."


def unwrap(payload: Any) -> Any:
    """Return the ``data`` member of an enveloped response, or the payload itself.

    Some endpoints answer ``{"data": [...]}`` and others the bare value.
    """
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """Async client bound to one backend and one session.

    Args:
        session: Identity whose token is sent with every request
        base_url: API root, defaults to ``Config.API_URL``
        timeout: Seconds per request, defaults to ``Config.REQUEST_TIMEOUT``
        transport: Optional httpx transport, used to substitute the network
    """

    def __init__(self, session: Optional[SessionContext] = None,
                 base_url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session = session or SessionContext()
        self.base_url = (base_url or Config.API_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout if timeout is not None else Config.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> Dict[str, str]:
        if self.session.token:
            return {"Authorization": f"Bearer {self.session.token}"}
        logger.warning("No token in session, sending request without Authorization header")
        return {}

    async def request(self, method: str, path: str,
                      json: Any = None,
                      params: Optional[Dict[str, Any]] = None) -> Any:
        """Send a request and return the decoded body.

        Raises:
            Unauthorized: On 401, after clearing the session
            NotFound: On 404
            ApiError: On any other 4xx/5xx
            NoResponse: When the server could not be reached
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            response = await self._client.request(
                method, path, json=json, params=params or None, headers=self._auth_headers()
            )
        except httpx.RequestError as e:
            logger.error("%s %s failed: no response from server: %s", method, path, e)
            raise NoResponse(NO_RESPONSE_ERROR) from e

        data = _decode(response)
        if response.is_success:
            logger.debug("%s %s -> %s", method, path, response.status_code)
            return data

        status = response.status_code
        message = GENERIC_ERROR
        if isinstance(data, dict) and data.get("message"):
            message = data["message"]
        logger.error("%s %s -> %s: %s", method, path, status, message)

        if status == 401:
            logger.warning("401 Unauthorized, clearing session")
            self.session.clear()
            raise Unauthorized(message, status=status, data=data)
        if status == 404:
            raise NotFound(message, status=status, data=data)
        raise ApiError(message, status=status, data=data)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, json=json, params=params)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, json=json, params=params)
