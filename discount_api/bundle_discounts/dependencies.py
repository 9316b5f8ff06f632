from fastapi import Header, HTTPException, Request

from .clients.commerce import CommercePlatformClient
from .schemas.bundle import VariantSnapshot
from .schemas.coupon import Merchant
from .utils.cache import TTLCache


def get_merchant(x_store_id: str = Header(default="", alias="X-Store-Id")) -> Merchant:
    store_id = x_store_id.strip()
    if not store_id:
        raise HTTPException(status_code=400, detail="Missing X-Store-Id header")
    return Merchant(store_id=store_id)


def get_access_token(x_access_token: str = Header(default="", alias="X-Access-Token")) -> str:
    return x_access_token.strip()


def get_platform_client() -> CommercePlatformClient:
    return CommercePlatformClient()


def get_variant_cache(request: Request) -> TTLCache[VariantSnapshot]:
    return request.app.state.variant_cache
