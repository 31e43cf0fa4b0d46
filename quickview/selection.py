import logging
from enum import Enum
from typing import Dict, List, Optional, Set

from .models import ProductDetail, ProductOption, ProductVariant
from .variant_rules import Selection, VariantRules

logger = logging.getLogger(__name__)


class SelectionState(str, Enum):
    NO_PRODUCT = "no-product"
    DEFAULT_SELECTION = "default-selection"
    USER_ADJUSTED = "user-adjusted"


class AddDisabledReason(str, Enum):
    NO_PRODUCT = "no-product"
    INCOMPLETE_SELECTION = "incomplete-selection"
    NO_VARIANT = "no-variant"
    UNAVAILABLE = "unavailable"


class VariantSelection:
    """
    Shopper's in-progress option choices for the loaded product.

    The effective selection is a computed default layer overlaid by the
    shopper's explicit choices. Both layers are rebuilt when the product
    identity changes, so choices never carry over between products.
    """

    def __init__(self):
        self._product: Optional[ProductDetail] = None
        self._default: Selection = {}
        self._user: Selection = {}

    @property
    def product(self) -> Optional[ProductDetail]:
        return self._product

    @property
    def state(self) -> SelectionState:
        if self._product is None:
            return SelectionState.NO_PRODUCT
        if self._user:
            return SelectionState.USER_ADJUSTED
        return SelectionState.DEFAULT_SELECTION

    def set_product(self, product: Optional[ProductDetail]) -> None:
        previous_id = self._product.id if self._product else None
        current_id = product.id if product else None
        self._product = product
        if previous_id == current_id:
            return
        self._user = {}
        self._default = self._default_for(product) if product else {}

    @staticmethod
    def _default_for(product: ProductDetail) -> Selection:
        if not VariantRules.has_real_options(product.options):
            first = VariantRules.first_available_variant(product.variants)
            return VariantRules.selection_from_variant(first)
        # hidden single-value options can never be picked by the shopper
        return {
            o.name: o.values[0]
            for o in product.options
            if VariantRules.is_degenerate_option(o) and len(o.values) == 1
        }

    def select_option(self, name: str, value: str, product_id: Optional[str] = None) -> bool:
        """
        Records a choice. Availability is not checked here; the derived views
        reflect contradictions. Returns False when the write was discarded.
        """
        product = self._product
        if product is None:
            logger.debug("Discarding selection %s=%s: no product loaded", name, value)
            return False
        if product_id is not None and product_id != product.id:
            logger.debug("Discarding selection %s=%s for superseded product %s", name, value, product_id)
            return False
        option = next((o for o in product.options if o.name == name), None)
        if option is None or value not in option.values:
            logger.debug("Discarding selection %s=%s: not an option of %s", name, value, product.handle)
            return False
        self._user = {**self._user, name: value}
        return True

    # ---------------------------------------------------------
    # Derived views, recomputed on every access
    # ---------------------------------------------------------
    @property
    def variants(self) -> List[ProductVariant]:
        return self._product.variants if self._product else []

    @property
    def options(self) -> List[ProductOption]:
        return self._product.options if self._product else []

    @property
    def visible_options(self) -> List[ProductOption]:
        return VariantRules.real_options(self.options)

    @property
    def selection(self) -> Selection:
        return {**self._default, **self._user}

    @property
    def resolved_variant(self) -> Optional[ProductVariant]:
        if self._product is None:
            return None
        return VariantRules.resolve_variant(self.variants, self.selection)

    @property
    def available_values(self) -> Dict[str, Set[str]]:
        return VariantRules.available_values_by_option(self.variants, self.options, self.selection)

    def is_option_disabled(self, name: str, value: str) -> bool:
        return not VariantRules.is_option_value_available(self.variants, self.selection, name, value)

    def is_selected(self, name: str, value: str) -> bool:
        return self.selection.get(name) == value

    @property
    def add_disabled_reason(self) -> Optional[AddDisabledReason]:
        if self._product is None:
            return AddDisabledReason.NO_PRODUCT
        variant = self.resolved_variant
        if variant is None:
            if VariantRules.has_real_options(self.options):
                return AddDisabledReason.INCOMPLETE_SELECTION
            return AddDisabledReason.NO_VARIANT
        if not variant.available_for_sale:
            return AddDisabledReason.UNAVAILABLE
        return None

    @property
    def is_add_disabled(self) -> bool:
        return self.add_disabled_reason is not None
