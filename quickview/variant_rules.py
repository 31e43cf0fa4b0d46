from typing import Dict, List, Mapping, Optional, Set
from .models import ProductOption, ProductVariant

Selection = Dict[str, str]


class VariantRules:

    # ---------------------------------------------------------
    # 1. VARIANT RESOLUTION
    # ---------------------------------------------------------
    @staticmethod
    def resolve_variant(variants: List[ProductVariant], selection: Mapping[str, str]) -> Optional[ProductVariant]:
        """
        Returns the single variant whose every option is present in the
        selection with the same value. Partial selections never resolve.
        """
        matches = [
            v for v in variants
            if all(selection.get(o.name) == o.value for o in v.selected_options)
        ]
        return matches[0] if len(matches) == 1 else None

    @staticmethod
    def first_available_variant(variants: List[ProductVariant]) -> Optional[ProductVariant]:
        return next((v for v in variants if v.available_for_sale), None)

    @staticmethod
    def selection_from_variant(variant: Optional[ProductVariant]) -> Selection:
        if variant is None:
            return {}
        return dict(variant.option_map)

    # ---------------------------------------------------------
    # 2. AVAILABILITY RULES
    # ---------------------------------------------------------
    @staticmethod
    def is_option_value_available(
        variants: List[ProductVariant],
        selection: Mapping[str, str],
        option_name: str,
        option_value: str,
    ) -> bool:
        """True if at least one sellable completion exists with this value forced in."""
        test_selection = {**selection, option_name: option_value}
        return any(
            v.available_for_sale
            and all(v.value_for(name) == value for name, value in test_selection.items())
            for v in variants
        )

    @staticmethod
    def available_values_by_option(
        variants: List[ProductVariant],
        options: List[ProductOption],
        selection: Mapping[str, str],
    ) -> Dict[str, Set[str]]:
        available: Dict[str, Set[str]] = {o.name: set() for o in options}

        for variant in variants:
            if not variant.available_for_sale:
                continue
            # options the variant does not carry never exclude it
            consistent = all(
                variant.value_for(name) in (None, value)
                for name, value in selection.items()
            )
            if consistent:
                for o in variant.selected_options:
                    available.setdefault(o.name, set()).add(o.value)

        return available

    @staticmethod
    def stock_status(variants: List[ProductVariant]) -> str:
        if any(v.available_for_sale for v in variants):
            return "In Stock"
        return "Out of Stock"

    # ---------------------------------------------------------
    # 3. OPTION VISIBILITY RULES
    # ---------------------------------------------------------
    @staticmethod
    def is_degenerate_option(option: ProductOption) -> bool:
        """Options with at most one value cannot discriminate (e.g. Title: [Default Title])."""
        return len(option.values) <= 1

    @staticmethod
    def real_options(options: List[ProductOption]) -> List[ProductOption]:
        return [o for o in options if not VariantRules.is_degenerate_option(o)]

    @staticmethod
    def has_real_options(options: List[ProductOption]) -> bool:
        return bool(VariantRules.real_options(options))
