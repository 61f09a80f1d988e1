import os
import httpx
from typing import Dict, Any, List, Optional
from storefront.utils.logger import get_logger

logger = get_logger("utils.supabase_client")

# PostgREST operators accepted verbatim in filter values ("gte.100", "in.(a,b)")
_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is")


def build_filter_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Turn {column: value} into PostgREST query params; bare values mean equality."""
    params: Dict[str, str] = {}
    for key, val in (filters or {}).items():
        if isinstance(val, str) and "." in val and val.split(".")[0] in _OPERATORS:
            params[key] = val
        else:
            params[key] = f"eq.{val}"
    return params


class SupabaseClient:
    """
    Lightweight async client for the Supabase REST (PostgREST) and auth APIs.

    Failures are not swallowed here: HTTP error statuses raise
    httpx.HTTPStatusError and transport problems (including the fixed request
    timeout) raise the matching httpx.HTTPError subclass. Callers decide how
    to surface them.
    """
    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or os.environ.get("SUPABASE_URL") or ""
        self.key = key or os.environ.get("SUPABASE_KEY") or ""

        if not self.url or not self.key:
            logger.warning("SUPABASE_URL or SUPABASE_KEY not set in environment.")

        self.headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation"
        }
        self.client = httpx.AsyncClient(
            base_url=self.url or "http://localhost",
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )

    def _auth_headers(self, access_token: Optional[str]) -> Dict[str, str]:
        # A user token makes row-level security apply to the signed-in user
        if access_token:
            return {"Authorization": f"Bearer {access_token}"}
        return {}

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        select: str = "*",
        limit: Optional[int] = None,
        order: Optional[str] = None,
        or_filter: Optional[str] = None,
        and_filter: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a Supabase table.

        or_filter / and_filter take PostgREST logical groups, e.g.
        "(price.gte.10,price.lte.300)", for conditions on the same column.
        """
        params = {"select": select}
        params.update(build_filter_params(filters))
        if or_filter:
            params["or"] = or_filter
        if and_filter:
            params["and"] = and_filter
        if limit:
            params["limit"] = str(limit)
        if order:
            params["order"] = order

        response = await self.client.get(
            f"/rest/v1/{table}", params=params, headers=self._auth_headers(access_token)
        )
        response.raise_for_status()
        rows = response.json()
        return rows if isinstance(rows, list) else []

    async def insert(
        self,
        table: str,
        payload: Dict[str, Any],
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Insert one row and return the stored representation."""
        response = await self.client.post(
            f"/rest/v1/{table}", json=payload, headers=self._auth_headers(access_token)
        )
        response.raise_for_status()
        rows = response.json()
        return rows if isinstance(rows, list) else [rows]

    async def update(
        self,
        table: str,
        filters: Dict[str, Any],
        payload: Dict[str, Any],
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Patch every row matching filters."""
        response = await self.client.patch(
            f"/rest/v1/{table}",
            params=build_filter_params(filters),
            json=payload,
            headers=self._auth_headers(access_token),
        )
        response.raise_for_status()
        rows = response.json() if response.content else []
        return rows if isinstance(rows, list) else [rows]

    async def delete(
        self,
        table: str,
        filters: Dict[str, Any],
        access_token: Optional[str] = None,
    ) -> None:
        """Delete every row matching filters. An empty filter set is refused."""
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        response = await self.client.delete(
            f"/rest/v1/{table}",
            params=build_filter_params(filters),
            headers=self._auth_headers(access_token),
        )
        response.raise_for_status()

    async def auth_request(
        self,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST to the auth API (/auth/v1/<path>)."""
        response = await self.client.post(
            f"/auth/v1/{path}",
            json=payload or {},
            params=params,
            headers=self._auth_headers(access_token),
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    async def aclose(self) -> None:
        await self.client.aclose()
