"""Repository module for the backend REST collections.

Each repository wraps one collection endpoint of the commerce backend and exposes
plain CRUD calls over it. It is the only layer that knows URL shapes; services
above it deal with payloads and business rules.
"""
from typing import Any, Dict, List, Optional

from ECommerceAdmin.client import ApiClient, unwrap
from ECommerceAdmin.schemas import Payload


def to_body(payload: Any) -> Any:
    if isinstance(payload, Payload):
        return payload.to_wire()
    return payload


class RestRepository:
    """Repository for one REST collection such as ``/admin/coupons``.

    Collection reads are unwrapped from the ``{"data": ...}`` envelope when the
    backend uses one, so callers always receive a list of dicts.
    """

    def __init__(self, client: ApiClient, base_path: str):
        self._client = client
        self.base_path = base_path.rstrip("/")

    def item_path(self, item_id: str, *suffix: str) -> str:
        return "/".join([self.base_path, str(item_id), *suffix])

    async def list(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        items = unwrap(await self._client.get(self.base_path, params=params))
        return list(items or [])

    async def get(self, item_id: str) -> Dict[str, Any]:
        return unwrap(await self._client.get(self.item_path(item_id)))

    async def create(self, payload: Any) -> Any:
        return unwrap(await self._client.post(self.base_path, json=to_body(payload)))

    async def update(self, item_id: str, payload: Any) -> Any:
        return unwrap(await self._client.put(self.item_path(item_id), json=to_body(payload)))

    async def delete(self, item_id: str) -> Any:
        return await self._client.delete(self.item_path(item_id))
