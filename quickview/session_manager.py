import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from .modal import Dialog, Element, Page, PageResources
from .product_loader import FetchProduct
from .quick_view import QuickView


@dataclass
class ShopperSession:
    page: Page
    quick_view: QuickView
    triggers: Dict[str, Element] = field(default_factory=dict)

    def trigger_for(self, name: Optional[str]) -> Optional[Element]:
        """Product card buttons are created on first use so focus can return to them."""
        if not name:
            return None
        if name not in self.triggers:
            self.triggers[name] = self.page.root.append(Element(name))
        return self.triggers[name]


class SessionManager:
    def __init__(self, fetch_product: FetchProduct, **quick_view_options):
        self.fetch_product = fetch_product
        self.quick_view_options = quick_view_options
        # {session_id: ShopperSession}
        self.sessions: Dict[str, ShopperSession] = {}

    def create_session(self) -> str:
        session_id = str(uuid.uuid4())
        page = Page()
        dialog = Dialog()
        dialog.append(Element("close-button"))
        self.sessions[session_id] = ShopperSession(
            page=page,
            quick_view=QuickView(self.fetch_product, PageResources(page), dialog=dialog,
                                 **self.quick_view_options),
        )
        return session_id

    def get_session(self, session_id: str) -> Optional[ShopperSession]:
        return self.sessions.get(session_id)

    def end_session(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        if session is not None:
            session.quick_view.dispose()
