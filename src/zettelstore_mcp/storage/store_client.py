"""HTTP client for the PostgREST-style data store.

Every call is a single synchronous request: no retries, no caching, and
the default httpx timeout. Successful responses are decoded to Python
data; failures are raised as ``StoreError`` so the service layer can turn
them into ``Err`` results.

Response conventions:
    - 2xx with a JSON body: the parsed JSON
    - 200/201 with an empty body: ``[]``
    - 204: ``None``
    - anything else: ``StoreError``
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional

import httpx

from zettelstore_mcp.exceptions import ErrorCode, StoreError
from zettelstore_mcp.utils import escape_like_pattern, quote_filter_value

if TYPE_CHECKING:
    from zettelstore_mcp.config import ZettelstoreConfig

Params = Mapping[str, Any]


# =============================================================================
# Filter helpers (PostgREST "operator.value" convention)
# =============================================================================


def eq(value: Any) -> str:
    """``column=eq.<value>``"""
    return f"eq.{value}"


def ilike_condition(column: str, term: str) -> str:
    """``column.ilike."*term*"`` for use inside ``or_filter``."""
    return f"{column}.ilike." + quote_filter_value(f"*{escape_like_pattern(term)}*")


def in_list(values: Iterable[Any]) -> str:
    """``column=in.(a,b,c)`` with each value quoted."""
    return "in.(" + ",".join(quote_filter_value(str(v)) for v in values) + ")"


def or_filter(*conditions: str) -> str:
    """Combine ``column.op.value`` conditions for the ``or`` parameter."""
    return "(" + ",".join(conditions) + ")"


class StoreClient:
    """Typed HTTP verbs against the store's resource collections.

    Args:
        base_url: REST root, e.g. ``https://xyz.supabase.co/rest/v1``.
        api_key: Sent as the ``apikey`` header and as a bearer token.
        return_representation: Ask the store to echo written rows back.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        logger: Logger to use; defaults to this module's logger.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        return_representation: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if return_representation:
            headers["Prefer"] = "return=representation"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url, headers=headers, transport=transport
        )
        self._logger.info(f"StoreClient initialized with base_url: {self.base_url}")

    @classmethod
    def from_config(
        cls,
        cfg: "ZettelstoreConfig",
        *,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "StoreClient":
        """Build a client from configuration.

        Raises:
            ConfigurationError: If the store URL or key is missing.
        """
        return cls(
            cfg.rest_url(),
            cfg.api_key(),
            return_representation=cfg.return_representation,
            transport=transport,
            logger=logger,
        )

    def get(self, path: str, params: Optional[Params] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(
        self, path: str, data: Any = None, params: Optional[Params] = None
    ) -> Any:
        return self._request("POST", path, data=data, params=params)

    def patch(
        self, path: str, data: Any = None, params: Optional[Params] = None
    ) -> Any:
        return self._request("PATCH", path, data=data, params=params)

    def delete(self, path: str, params: Optional[Params] = None) -> Any:
        return self._request("DELETE", path, params=params)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "StoreClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        data: Any = None,
        params: Optional[Params] = None,
    ) -> Any:
        query = {k: str(v) for k, v in (params or {}).items()}
        self._logger.debug(f"{method} {path} params={query}")
        try:
            response = self._client.request(
                method,
                path,
                params=query or None,
                json=data if data is not None else None,
            )
        except httpx.HTTPError as e:
            self._logger.error(f"Store request error: {method} {path}: {e}")
            raise StoreError(
                f"Store request failed: {e}",
                method=method,
                path=path,
                code=ErrorCode.STORE_CONNECTION_FAILED,
                original_error=e,
            ) from e

        self._logger.debug(
            f"{method} {path} -> {response.status_code} ({len(response.content)} bytes)"
        )

        if response.status_code == 204:
            return None
        if response.is_success:
            return self._decode_body(response, method, path)
        raise self._error_from_response(response, method, path)

    def _decode_body(self, response: httpx.Response, method: str, path: str) -> Any:
        body = response.text
        if not body or not body.strip():
            # Stores commonly answer writes with an empty body
            return []
        try:
            return response.json()
        except json.JSONDecodeError as e:
            self._logger.warning(
                f"{method} {path}: response is not JSON, returning raw text ({e})"
            )
            return body

    def _error_from_response(
        self, response: httpx.Response, method: str, path: str
    ) -> StoreError:
        message = f"HTTP {response.status_code}: {response.reason_phrase}"
        store_message = None
        extra: Dict[str, Any] = {}
        try:
            error_body = response.json()
        except json.JSONDecodeError:
            error_body = None

        if isinstance(error_body, dict):
            store_message = error_body.get("message")
            for key in ("code", "details", "hint"):
                if error_body.get(key):
                    extra[f"store_{key}"] = str(error_body[key])[:200]
        elif response.text:
            store_message = response.text

        if store_message:
            message += f" - {store_message}"

        self._logger.error(f"Store request failed: {method} {path}: {message}")
        return StoreError(
            message,
            method=method,
            path=path,
            status_code=response.status_code,
            store_message=store_message,
            code=ErrorCode.STORE_REQUEST_FAILED,
            extra=extra,
        )
