"""Shared catalog fixtures, in the Storefront API payload shape."""

import asyncio
from typing import Dict, List, Optional

import pytest

from quickview.models import ProductDetail


def _money(amount: str) -> Dict[str, str]:
    return {"amount": amount, "currencyCode": "USD"}


def _variant(vid: str, options: Dict[str, str], available: bool, price: str = "20.0",
             compare_at: Optional[str] = None, image: Optional[str] = None) -> Dict:
    return {
        "id": vid,
        "title": " / ".join(options.values()),
        "availableForSale": available,
        "selectedOptions": [{"name": k, "value": v} for k, v in options.items()],
        "price": _money(price),
        "compareAtPrice": _money(compare_at) if compare_at else None,
        "image": {"url": image, "altText": None, "width": 800, "height": 800} if image else None,
    }


def make_product(pid: str, handle: str, options: List[Dict], variants: List[Dict]) -> ProductDetail:
    return ProductDetail.model_validate({
        "id": pid,
        "handle": handle,
        "title": handle.replace("-", " ").title(),
        "description": "Soft cotton.",
        "featuredImage": {"url": f"https://cdn.example.com/{handle}.jpg", "altText": handle},
        "images": {"nodes": [{"url": f"https://cdn.example.com/{handle}.jpg"}]},
        "options": options,
        "variants": {"nodes": variants},
        "priceRange": {"minVariantPrice": _money("18.0"), "maxVariantPrice": _money("25.0")},
    })


@pytest.fixture
def tee() -> ProductDetail:
    """Size x Color with two sellable and two sold-out combinations."""
    return make_product(
        "gid://shopify/Product/1", "classic-tee",
        options=[
            {"id": "o1", "name": "Size", "values": ["S", "M"]},
            {"id": "o2", "name": "Color", "values": ["Black", "White"]},
        ],
        variants=[
            _variant("v-s-black", {"Size": "S", "Color": "Black"}, True, price="20.0",
                     compare_at="30.0", image="https://cdn.example.com/s-black.jpg"),
            _variant("v-s-white", {"Size": "S", "Color": "White"}, False),
            _variant("v-m-black", {"Size": "M", "Color": "Black"}, False),
            _variant("v-m-white", {"Size": "M", "Color": "White"}, True, price="22.0"),
        ],
    )


@pytest.fixture
def gift_card() -> ProductDetail:
    """Single degenerate Title option."""
    return make_product(
        "gid://shopify/Product/2", "gift-card",
        options=[{"id": "o3", "name": "Title", "values": ["Default Title"]}],
        variants=[_variant("v-gift", {"Title": "Default Title"}, True, price="50.0")],
    )


@pytest.fixture
def sold_out_tote() -> ProductDetail:
    return make_product(
        "gid://shopify/Product/3", "sold-out-tote",
        options=[{"id": "o4", "name": "Color", "values": ["Natural", "Navy"]}],
        variants=[
            _variant("v-natural", {"Color": "Natural"}, False),
            _variant("v-navy", {"Color": "Navy"}, False),
        ],
    )


@pytest.fixture
def catalog(tee, gift_card, sold_out_tote) -> Dict[str, ProductDetail]:
    return {p.handle: p for p in (tee, gift_card, sold_out_tote)}


class FakeCatalog:
    """Async fetcher whose responses are released by the test, in any order."""

    def __init__(self, products: Dict[str, ProductDetail]):
        self.products = products
        self.calls: List[str] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.failures: Dict[str, Exception] = {}
        self.auto_release = False

    def release(self, handle: str) -> None:
        self.gates.setdefault(handle, asyncio.Event()).set()

    async def __call__(self, handle: str) -> Optional[ProductDetail]:
        self.calls.append(handle)
        if not self.auto_release:
            await self.gates.setdefault(handle, asyncio.Event()).wait()
        if handle in self.failures:
            raise self.failures[handle]
        return self.products.get(handle)


@pytest.fixture
def fake_catalog(catalog) -> FakeCatalog:
    return FakeCatalog(catalog)
