import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..config import settings
from ..errors import PlatformApiError
from ..utils.dates import format_date_only

logger = logging.getLogger(__name__)


def platform_error_message(operation: str, status: Optional[int]) -> str:
    if status == 401:
        return f"Platform authorization failed while trying to {operation}. Reinstall the app to refresh scopes/tokens."
    if status == 403:
        return f"Platform access denied while trying to {operation}. Check the app's granted scopes."
    if status == 404:
        return f"Platform endpoint not found while trying to {operation}. Check PLATFORM_API_BASE_URL."
    if status == 409:
        return f"Platform reported a conflict while trying to {operation}."
    if status == 422:
        return f"Platform rejected the request while trying to {operation}."
    if status == 429:
        return f"Platform rate limit reached while trying to {operation}. Please retry shortly."
    return f"Failed to {operation} on the commerce platform"


def build_coupon_payload(
    code: str,
    discount_type: str,
    discount_value: float,
    product_ids: List[str],
    starts_at: datetime,
    expires_at: datetime,
) -> Dict[str, Any]:
    """Single-use coupon restricted to the matched products."""
    return {
        "code": code,
        "type": discount_type,
        "amount": discount_value,
        "free_shipping": False,
        "exclude_sale_products": False,
        "is_apply_with_offer": True,
        "start_date": format_date_only(starts_at),
        "expiry_date": format_date_only(expires_at),
        "usage_limit": 1,
        "usage_limit_per_user": 1,
        "include_product_ids": list(product_ids),
    }


class CommercePlatformClient:
    """Thin wrapper over the commerce platform's admin API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.platform_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.platform_api_timeout
        self._transport = transport

    def _client(self, access_token: str) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            headers={"Authorization": f"Bearer {access_token}"},
            transport=self._transport,
        )

    def _request(self, method: str, path: str, access_token: str, operation: str, code: str, **kwargs) -> Dict[str, Any]:
        try:
            with self._client(access_token) as client:
                resp = client.request(method, path, **kwargs)
                resp.raise_for_status()
                try:
                    return resp.json()
                except ValueError as e:
                    logger.error(f"Platform call {method} {path} returned a non-JSON body ({resp.status_code})")
                    raise PlatformApiError(502, platform_error_message(operation, None), code, resp.text) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            try:
                details = e.response.json()
            except ValueError:
                details = e.response.text
            logger.error(f"Platform call {method} {path} failed with {status}: {details}")
            raise PlatformApiError(status, platform_error_message(operation, status), code, details) from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling platform {method} {path}: {e}")
            raise PlatformApiError(503, platform_error_message(operation, None), code, str(e)) from e

    def create_coupon(self, access_token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a coupon; returns the platform body, e.g. ``{"data": {"id": 123}}``."""
        return self._request(
            "POST",
            "/admin/v2/coupons",
            access_token,
            operation="create coupon",
            code="PLATFORM_COUPON_CREATE_FAILED",
            json=payload,
        )

    def get_product_variant(self, access_token: str, variant_id: str) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"/admin/v2/products/variants/{quote(str(variant_id), safe='')}",
            access_token,
            operation="fetch product variant",
            code="PLATFORM_VARIANT_FETCH_FAILED",
        )
