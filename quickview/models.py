from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional, Dict, Any, Set


class CatalogModel(BaseModel):
    # Storefront payloads are camelCase; python callers use field names
    model_config = ConfigDict(populate_by_name=True, frozen=True)


def _unwrap_nodes(value: Any) -> Any:
    """Storefront connections arrive as {"nodes": [...]}."""
    if isinstance(value, dict) and "nodes" in value:
        return value["nodes"]
    return value


class MoneyV2(CatalogModel):
    amount: str
    currency_code: str = Field(alias="currencyCode")


class ProductImage(CatalogModel):
    url: str
    alt_text: Optional[str] = Field(default=None, alias="altText")
    width: Optional[int] = None
    height: Optional[int] = None


class ProductOption(CatalogModel):
    id: Optional[str] = None
    name: str
    values: List[str]

    @field_validator("values")
    @classmethod
    def _unique_values(cls, values: List[str]) -> List[str]:
        if len(set(values)) != len(values):
            raise ValueError("option values must be unique")
        return values


class SelectedOption(CatalogModel):
    name: str
    value: str


class ProductVariant(CatalogModel):
    id: str
    title: str = ""
    available_for_sale: bool = Field(alias="availableForSale")
    selected_options: List[SelectedOption] = Field(default_factory=list, alias="selectedOptions")
    price: MoneyV2
    compare_at_price: Optional[MoneyV2] = Field(default=None, alias="compareAtPrice")
    image: Optional[ProductImage] = None

    @property
    def option_map(self) -> Dict[str, str]:
        return {o.name: o.value for o in self.selected_options}

    def value_for(self, option_name: str) -> Optional[str]:
        for option in self.selected_options:
            if option.name == option_name:
                return option.value
        return None


class PriceRange(CatalogModel):
    min_variant_price: MoneyV2 = Field(alias="minVariantPrice")
    max_variant_price: Optional[MoneyV2] = Field(default=None, alias="maxVariantPrice")


class ProductDetail(CatalogModel):
    id: str
    handle: str
    title: str
    description: str = ""
    featured_image: Optional[ProductImage] = Field(default=None, alias="featuredImage")
    images: List[ProductImage] = Field(default_factory=list)
    options: List[ProductOption] = Field(default_factory=list)
    variants: List[ProductVariant] = Field(default_factory=list)
    price_range: PriceRange = Field(alias="priceRange")

    @field_validator("images", "variants", mode="before")
    @classmethod
    def _unwrap_connections(cls, value: Any) -> Any:
        return _unwrap_nodes(value)

    @model_validator(mode="after")
    def _variants_cover_options(self) -> "ProductDetail":
        """Every variant carries exactly one value per declared option."""
        declared = {o.name for o in self.options}
        for variant in self.variants:
            names = [o.name for o in variant.selected_options]
            if len(names) != len(set(names)) or set(names) != declared:
                raise ValueError(
                    f"variant {variant.id} options {sorted(names)} do not match {sorted(declared)}"
                )
        return self


# ---------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------

class OpenRequest(BaseModel):
    handle: str = Field(..., min_length=1)
    trigger: Optional[str] = None  # id of the element that opened the modal


class SelectRequest(BaseModel):
    name: str
    value: str
    product_id: Optional[str] = None


class SessionStartResponse(BaseModel):
    session_id: str


class QuickViewResponse(BaseModel):
    is_open: bool
    handle: Optional[str] = None
    is_loading: bool = False
    is_error: bool = False
    is_not_found: bool = False
    error: Optional[str] = None
    product: Optional[Dict[str, Any]] = None
    selection: Dict[str, str] = {}
    resolved_variant: Optional[Dict[str, Any]] = None
    available_values_by_option: Dict[str, Set[str]] = {}
    visible_options: List[str] = []
    price: Optional[Dict[str, Any]] = None
    compare_at_price: Optional[Dict[str, Any]] = None
    is_on_sale: bool = False
    stock_status: Optional[str] = None
    is_add_disabled: bool = True
    add_disabled_reason: Optional[str] = None
    add_to_bag_status: str = "idle"
