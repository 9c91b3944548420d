"""Small synchronous client for the portal API."""
import json
import logging
import os
import time
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
DEFAULT_CACHE_PATH = os.path.join(os.path.expanduser("~"), ".portal_credentials_cache.json")


def _matches(item: dict, search: str) -> bool:
    needle = search.lower()
    return any(needle in str(item.get(key) or "").lower() for key in ("name", "email", "user_id"))


class PortalError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PortalClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        cache_path: str = DEFAULT_CACHE_PATH,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.cache_path = cache_path
        self._http = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _headers(self) -> Dict[str, str]:
        headers = dict(NO_CACHE_HEADERS)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and unwrap the ``{success, data, message}`` envelope."""
        params = dict(kwargs.pop("params", None) or {})
        if method.upper() == "GET":
            params["_t"] = int(time.time() * 1000)
        try:
            response = self._http.request(method, path, params=params, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            raise PortalError(f"Request to {path} failed: {e}") from e
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.is_error or not body.get("success", False):
            message = body.get("message") or f"HTTP {response.status_code}"
            raise PortalError(message, response.status_code)
        return body.get("data")

    def login(self, type: str, identifier: str, password: str) -> dict:
        data = self.request(
            "POST",
            "/api/auth/login",
            json={"type": type, "identifier": identifier, "password": password},
        )
        self.token = data["access_token"]
        return data

    def _read_cache(self) -> Optional[list]:
        try:
            with open(self.cache_path, encoding="utf-8") as fh:
                return json.load(fh)["items"]
        except (OSError, ValueError, KeyError):
            return None

    def _write_cache(self, items: list) -> None:
        try:
            with open(self.cache_path, "w", encoding="utf-8") as fh:
                json.dump({"saved_at": time.time(), "items": items}, fh)
        except OSError as e:
            logger.warning("Could not write credentials cache %s: %s", self.cache_path, e)

    def fetch_credentials(self, search: Optional[str] = None) -> dict:
        """Credentials list, falling back to the last cached copy when the API fails."""
        params = {"search": search} if search else None
        try:
            data = self.request("GET", "/api/users/credentials", params=params)
        except PortalError as e:
            cached = self._read_cache()
            if cached is None:
                raise
            logger.warning("Using cached credentials list: %s", e)
            if search:
                cached = [item for item in cached if _matches(item, search)]
            return {"items": cached, "from_cache": True}
        items = data.get("items", []) if isinstance(data, dict) else []
        if not search:
            self._write_cache(items)
        return {"items": items, "from_cache": False}
