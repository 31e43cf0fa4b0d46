import logging
import requests
from bs4 import BeautifulSoup
from pydantic import ValidationError
from typing import Optional, Dict, Any
from .models import ProductDetail
from . import config

logger = logging.getLogger(__name__)

_IMAGE_FIELDS = "url altText width height"
_MONEY_FIELDS = "amount currencyCode"

PRODUCT_BY_HANDLE_QUERY = f"""
query getProductByHandle($handle: String!) {{
  product(handle: $handle) {{
    id
    handle
    title
    descriptionHtml
    featuredImage {{ {_IMAGE_FIELDS} }}
    images(first: 20) {{ nodes {{ {_IMAGE_FIELDS} }} }}
    options {{ id name values }}
    variants(first: 100) {{
      nodes {{
        id
        title
        availableForSale
        selectedOptions {{ name value }}
        price {{ {_MONEY_FIELDS} }}
        compareAtPrice {{ {_MONEY_FIELDS} }}
        image {{ {_IMAGE_FIELDS} }}
      }}
    }}
    priceRange {{
      minVariantPrice {{ {_MONEY_FIELDS} }}
      maxVariantPrice {{ {_MONEY_FIELDS} }}
    }}
  }}
}}
"""


class CatalogError(Exception):
    """Transport or format failure talking to the catalog. Retryable by the caller."""


class ShopifyStorefrontClient:
    def __init__(self, domain: str, access_token: str, api_version: str = config.STOREFRONT_API_VERSION,
                 timeout: float = config.REQUEST_TIMEOUT):
        self.domain = domain.replace("https://", "").replace("/", "")
        self.endpoint = f"https://{self.domain}/api/{api_version}/graphql.json"
        self.timeout = timeout
        self.headers = {
            "X-Shopify-Storefront-Access-Token": access_token,
            "Content-Type": "application/json"
        }

    @classmethod
    def from_env(cls) -> "ShopifyStorefrontClient":
        if not config.SHOPIFY_STORE_DOMAIN or not config.SHOPIFY_STOREFRONT_TOKEN:
            logger.warning("⚠️ SHOPIFY_STORE_DOMAIN / SHOPIFY_STOREFRONT_TOKEN missing.")
        return cls(config.SHOPIFY_STORE_DOMAIN, config.SHOPIFY_STOREFRONT_TOKEN)

    def fetch_product_by_handle(self, handle: str) -> Optional[ProductDetail]:
        """
        Fetches one product for the quick view.
        Returns None when the store has no product with this handle.
        Raises CatalogError on transport or payload failures.
        """
        try:
            response = requests.post(
                self.endpoint,
                headers=self.headers,
                json={"query": PRODUCT_BY_HANDLE_QUERY, "variables": {"handle": handle}},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("❌ Storefront request failed: handle=%s, error=%s", handle, e)
            raise CatalogError(f"Unable to reach catalog: {e}") from e

        if response.status_code != 200:
            logger.error("❌ Storefront API Error: %s - %s", response.status_code, response.text[:200])
            raise CatalogError(f"Catalog responded with {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise CatalogError("Catalog response is not JSON") from e

        if body.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in body["errors"])
            raise CatalogError(f"Catalog query failed: {messages}")

        item = (body.get("data") or {}).get("product")
        if item is None:
            logger.info("Product not found: %s", handle)
            return None

        try:
            return self._map_to_detail(item)
        except ValidationError as e:
            logger.error("❌ Malformed product payload for %s: %s", handle, e)
            raise CatalogError(f"Malformed product payload for {handle}") from e

    def _clean_html(self, raw_html: str) -> str:
        if not raw_html: return ""
        return BeautifulSoup(raw_html, "html.parser").get_text(separator="\n").strip()

    def _map_to_detail(self, item: Dict[str, Any]) -> ProductDetail:
        payload = dict(item)
        if "descriptionHtml" in payload:
            payload["description"] = self._clean_html(payload.pop("descriptionHtml") or "")
        return ProductDetail.model_validate(payload)
