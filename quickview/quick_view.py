"""Quick view orchestration: modal state, product loading and variant selection wired together."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from . import config
from .modal import Dialog, Element, ModalLifecycle, PageResources
from .models import MoneyV2, ProductDetail, ProductImage, ProductVariant, QuickViewResponse
from .product_loader import FetchProduct, LoadState, LoadStatus, ProductLoader
from .selection import AddDisabledReason, VariantSelection
from .variant_rules import Selection, VariantRules

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Open/close state machine
# ---------------------------------------------------------

@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class Open:
    handle: str
    trigger: Optional[Element] = None


ModalState = Union[Closed, Open]


@dataclass(frozen=True)
class OpenAction:
    handle: str
    trigger: Optional[Element] = None


@dataclass(frozen=True)
class CloseAction:
    pass


Action = Union[OpenAction, CloseAction]


def reduce(state: ModalState, action: Action) -> ModalState:
    if isinstance(action, OpenAction):
        if isinstance(state, Open) and state.handle == action.handle:
            return state
        return Open(handle=action.handle, trigger=action.trigger)
    if isinstance(action, CloseAction):
        return Closed()
    raise TypeError(f"Unknown quick view action: {action!r}")


# ---------------------------------------------------------
# View model
# ---------------------------------------------------------

class AddToBagStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"


@dataclass(frozen=True)
class QuickViewModel:
    is_open: bool
    handle: Optional[str] = None
    is_loading: bool = False
    is_error: bool = False
    is_not_found: bool = False
    error: Optional[str] = None
    product: Optional[ProductDetail] = None
    selection: Selection = field(default_factory=dict)
    resolved_variant: Optional[ProductVariant] = None
    available_values_by_option: Dict[str, Set[str]] = field(default_factory=dict)
    visible_options: List[str] = field(default_factory=list)
    price: Optional[MoneyV2] = None
    compare_at_price: Optional[MoneyV2] = None
    active_image: Optional[ProductImage] = None
    stock_status: Optional[str] = None
    add_disabled_reason: Optional[AddDisabledReason] = AddDisabledReason.NO_PRODUCT
    add_to_bag_status: AddToBagStatus = AddToBagStatus.IDLE

    @property
    def is_add_disabled(self) -> bool:
        return self.add_disabled_reason is not None

    @property
    def is_on_sale(self) -> bool:
        if self.price is None or self.compare_at_price is None:
            return False
        return Decimal(self.compare_at_price.amount) > Decimal(self.price.amount)

    def to_response(self) -> QuickViewResponse:
        def dump(model):
            return model.model_dump() if model is not None else None

        return QuickViewResponse(
            is_open=self.is_open,
            handle=self.handle,
            is_loading=self.is_loading,
            is_error=self.is_error,
            is_not_found=self.is_not_found,
            error=self.error,
            product=dump(self.product),
            selection=self.selection,
            resolved_variant=dump(self.resolved_variant),
            available_values_by_option=self.available_values_by_option,
            visible_options=self.visible_options,
            price=dump(self.price),
            compare_at_price=dump(self.compare_at_price),
            is_on_sale=self.is_on_sale,
            stock_status=self.stock_status,
            is_add_disabled=self.is_add_disabled,
            add_disabled_reason=self.add_disabled_reason.value if self.add_disabled_reason else None,
            add_to_bag_status=self.add_to_bag_status.value,
        )


# ---------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------

class QuickView:
    def __init__(
        self,
        fetch_product: FetchProduct,
        resources: PageResources,
        dialog: Optional[Dialog] = None,
        on_add: Optional[Callable[[ProductVariant], Awaitable[None]]] = None,
        add_delay: Tuple[float, float] = (config.ADD_TO_BAG_DELAY_MIN, config.ADD_TO_BAG_DELAY_MAX),
        reset_after: float = config.ADD_TO_BAG_RESET_SECONDS,
    ):
        self.selection = VariantSelection()
        self.loader = ProductLoader(fetch_product, on_change=self._on_load)
        self.modal = ModalLifecycle(resources, dialog or Dialog(), on_dismiss=self.close)
        self.on_add = on_add
        self.add_delay = add_delay
        self.reset_after = reset_after
        self._state: ModalState = Closed()
        self._add_status = AddToBagStatus.IDLE
        self._reset_handle: Optional[asyncio.TimerHandle] = None
        # bumped on every status change; an add only completes if it is unchanged
        self._add_token = 0

    @property
    def state(self) -> ModalState:
        return self._state

    def open(self, handle: str, trigger: Optional[Element] = None) -> None:
        self.dispatch(OpenAction(handle, trigger))

    def close(self) -> None:
        self.dispatch(CloseAction())

    def dispatch(self, action: Action) -> None:
        previous = self._state
        current = reduce(previous, action)

        if isinstance(current, Open):
            if isinstance(previous, Closed):
                self.modal.open(current.trigger)
                logger.info("🔍 Quick view opened for %s", current.handle)
            elif current is not previous and current.trigger is not None:
                self.modal.set_return_focus(current.trigger)
            self._state = current
            # same handle again only refetches after a failure
            if previous is not current or self.loader.state.status in (LoadStatus.IDLE, LoadStatus.ERROR):
                self.loader.request(current.handle)
            return

        self._state = current
        if isinstance(previous, Open):
            self.loader.request(None)
            self._set_add_status(AddToBagStatus.IDLE)
            self.modal.close()
            logger.info("Quick view closed (%s)", previous.handle)

    def dispose(self) -> None:
        """Teardown: abandon the fetch and release page resources whatever the state."""
        self._state = Closed()
        self.loader.cancel()
        self._set_add_status(AddToBagStatus.IDLE)
        self.modal.close()

    def select_option(self, name: str, value: str, product_id: Optional[str] = None) -> bool:
        return self.selection.select_option(name, value, product_id=product_id)

    async def settle(self) -> LoadState:
        return await self.loader.settle()

    def _on_load(self, state: LoadState) -> None:
        previous = self.selection.product
        self.selection.set_product(state.product)
        if (previous.id if previous else None) != (state.product.id if state.product else None):
            self._set_add_status(AddToBagStatus.IDLE)
        self.modal.refresh_focus()

    # ---------------------------------------------------------
    # Add to bag
    # ---------------------------------------------------------
    async def add_to_bag(self) -> bool:
        if self._add_status is not AddToBagStatus.IDLE or self.selection.is_add_disabled:
            return False
        variant = self.selection.resolved_variant

        self._set_add_status(AddToBagStatus.LOADING)
        token = self._add_token
        try:
            await asyncio.sleep(random.uniform(*self.add_delay))
            if self.on_add is not None:
                await self.on_add(variant)
        except BaseException:
            if token == self._add_token:
                self._set_add_status(AddToBagStatus.IDLE)
            raise

        if token != self._add_token:
            # closed, reopened or switched product while adding
            return False

        self._set_add_status(AddToBagStatus.SUCCESS)
        logger.info("✅ Added %s to bag", variant.id)
        self._reset_handle = asyncio.get_running_loop().call_later(
            self.reset_after, self._set_add_status, AddToBagStatus.IDLE
        )
        return True

    def _set_add_status(self, status: AddToBagStatus) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self._add_status = status
        self._add_token += 1

    # ---------------------------------------------------------
    # View model
    # ---------------------------------------------------------
    @property
    def view(self) -> QuickViewModel:
        state = self._state
        if isinstance(state, Closed):
            return QuickViewModel(is_open=False)

        load = self.loader.state
        selection = self.selection
        product = selection.product
        resolved = selection.resolved_variant

        price = compare_at = image = None
        if product is not None:
            price = resolved.price if resolved else product.price_range.min_variant_price
            compare_at = resolved.compare_at_price if resolved else None
            image = (resolved.image if resolved else None) or product.featured_image or next(iter(product.images), None)

        return QuickViewModel(
            is_open=True,
            handle=state.handle,
            is_loading=load.status is LoadStatus.LOADING,
            is_error=load.status is LoadStatus.ERROR,
            is_not_found=load.is_not_found,
            error=load.error,
            product=product,
            selection=selection.selection,
            resolved_variant=resolved,
            available_values_by_option=selection.available_values,
            visible_options=[o.name for o in selection.visible_options],
            price=price,
            compare_at_price=compare_at,
            active_image=image,
            stock_status=VariantRules.stock_status(product.variants) if product else None,
            add_disabled_reason=selection.add_disabled_reason,
            add_to_bag_status=self._add_status,
        )
