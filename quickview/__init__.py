from .modal import Dialog, Element, ModalLifecycle, Page, PageResources, ResourceBusyError
from .models import ProductDetail, ProductOption, ProductVariant
from .product_loader import LoadState, LoadStatus, ProductLoader, threaded
from .quick_view import QuickView, QuickViewModel
from .selection import AddDisabledReason, SelectionState, VariantSelection
from .shopify_client import CatalogError, ShopifyStorefrontClient
from .variant_rules import VariantRules
