"""Modal lifecycle: scroll suppression and focus containment while the quick view is open.

The page is modelled headlessly (body style, scroll offset, active element and
an element tree). Scroll and focus are page-wide, so they are handed to the
modal through a single `PageResources` handle with one owner at a time, and
every acquisition is registered on an ExitStack so any exit path releases it.
"""

import asyncio
import logging
from contextlib import ExitStack, contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from . import config

logger = logging.getLogger(__name__)


class ResourceBusyError(RuntimeError):
    """Scroll/focus are already owned by another modal."""


# ---------------------------------------------------------
# Headless page model
# ---------------------------------------------------------

class Element:
    def __init__(self, name: str, focusable: bool = True, disabled: bool = False,
                 tabindex: Optional[int] = None):
        self.name = name
        self.focusable = focusable
        self.disabled = disabled
        self.tabindex = tabindex
        self.parent: Optional["Element"] = None
        self.children: List["Element"] = []

    def __repr__(self) -> str:
        return f"<Element {self.name}>"

    def append(self, child: "Element") -> "Element":
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove(self, child: "Element") -> None:
        self.children.remove(child)
        child.parent = None

    def detach(self) -> None:
        if self.parent is not None:
            self.parent.remove(self)

    def contains(self, other: Optional["Element"]) -> bool:
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def descendants(self) -> Iterator["Element"]:
        for child in self.children:
            yield child
            yield from child.descendants()

    @property
    def can_focus(self) -> bool:
        return self.focusable and not self.disabled

    @property
    def is_tabbable(self) -> bool:
        return self.can_focus and self.tabindex != -1


class Dialog(Element):
    role = "dialog"
    aria_modal = True

    def __init__(self, name: str = "quick-view"):
        # focusable programmatically, never part of the tab order
        super().__init__(name, focusable=True, tabindex=-1)

    def tabbable_elements(self) -> List[Element]:
        return [el for el in self.descendants() if el.is_tabbable]


class Page:
    def __init__(self, inner_width: int = 1280, client_width: int = 1280, scroll_y: int = 0):
        self.root = Element("body")
        self.body_style: Dict[str, str] = {}
        self.inner_width = inner_width
        self.client_width = client_width
        self.scroll_y = scroll_y
        self.active_element: Element = self.root

    @property
    def scrollbar_width(self) -> int:
        return max(self.inner_width - self.client_width, 0)

    def is_connected(self, element: Element) -> bool:
        return self.root.contains(element)

    def focus(self, element: Element) -> bool:
        """Moves focus; returns False when the element is gone or cannot take focus."""
        if not self.is_connected(element) or not element.can_focus:
            return False
        self.active_element = element
        return True

    def scroll_to(self, y: int) -> None:
        self.scroll_y = y


# ---------------------------------------------------------
# Scoped resources
# ---------------------------------------------------------

class PageResources:
    """The one owned handle to page-wide scroll and focus."""

    def __init__(self, page: Page):
        self.page = page
        self._owner: Optional[object] = None

    @property
    def owner(self) -> Optional[object]:
        return self._owner

    @contextmanager
    def claimed_by(self, owner: object) -> Iterator[Page]:
        if self._owner is not None:
            raise ResourceBusyError(f"page resources already held by {self._owner!r}")
        self._owner = owner
        try:
            yield self.page
        finally:
            self._owner = None


class ScrollLock:
    STYLE_KEYS = ("overflow", "padding-right", "position", "top", "width")

    def __init__(self, page: Page):
        self.page = page
        self._saved: Optional[Dict[str, Optional[str]]] = None
        self._scroll_y = 0

    @property
    def held(self) -> bool:
        return self._saved is not None

    def acquire(self) -> "ScrollLock":
        if self._saved is not None:
            return self
        page = self.page
        style = page.body_style
        self._scroll_y = page.scroll_y
        self._saved = {key: style.get(key) for key in self.STYLE_KEYS}

        style["overflow"] = "hidden"
        if page.scrollbar_width > 0:
            style["padding-right"] = f"{page.scrollbar_width}px"
        style["position"] = "fixed"
        style["top"] = f"-{self._scroll_y}px"
        style["width"] = "100%"
        # a fixed body leaves the window with nothing to scroll
        page.scroll_to(0)
        return self

    def release(self) -> None:
        if self._saved is None:
            return
        style = self.page.body_style
        for key, value in self._saved.items():
            if value is None:
                style.pop(key, None)
            else:
                style[key] = value
        self._saved = None
        self.page.scroll_to(self._scroll_y)

    def __enter__(self) -> "ScrollLock":
        return self.acquire()

    def __exit__(self, *exc) -> None:
        self.release()


class FocusTrap:
    def __init__(self, page: Page, container: Dialog, return_focus: Optional[Element] = None,
                 retry_attempts: int = config.FOCUS_RETRY_ATTEMPTS,
                 retry_interval: float = config.FOCUS_RETRY_INTERVAL):
        self.page = page
        self.container = container
        self.return_focus = return_focus
        self.retry_attempts = retry_attempts
        self.retry_interval = retry_interval
        self._previous: Optional[Element] = None
        self._active = False
        self._retry_handle: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return self._active

    def acquire(self) -> "FocusTrap":
        if self._active:
            return self
        self._previous = self.page.active_element
        self._active = True
        if not self._focus_first():
            # content may still be loading; park focus on the dialog meanwhile
            self.page.focus(self.container)
            self._schedule_retry(self.retry_attempts)
        return self

    def refresh(self) -> None:
        """Content changed: pull focus onto the first control if it is parked on the dialog."""
        if self._active and not self._holds_child_focus():
            self._focus_first()

    def handle_tab(self, shift: bool = False) -> bool:
        """Cycles focus inside the dialog. Returns True when the key was consumed."""
        if not self._active:
            return False
        elements = self.container.tabbable_elements()
        if not elements:
            self.page.focus(self.container)
            return True

        current = self.page.active_element
        if current in elements:
            step = -1 if shift else 1
            target = elements[(elements.index(current) + step) % len(elements)]
        else:
            target = elements[-1] if shift else elements[0]
        self.page.focus(target)
        return True

    def release(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

        target = self.return_focus or self._previous
        if target is None or not self.page.focus(target):
            logger.debug("Return focus target unavailable, focusing document root")
            self.page.focus(self.page.root)

    def _holds_child_focus(self) -> bool:
        active = self.page.active_element
        return active is not self.container and self.container.contains(active)

    def _focus_first(self) -> bool:
        elements = self.container.tabbable_elements()
        return bool(elements) and self.page.focus(elements[0])

    def _schedule_retry(self, remaining: int) -> None:
        if remaining <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no loop to retry on; refresh() picks up later content
        self._retry_handle = loop.call_later(self.retry_interval, self._retry, remaining - 1)

    def _retry(self, remaining: int) -> None:
        self._retry_handle = None
        if not self._active or self._holds_child_focus():
            return
        if not self._focus_first():
            self._schedule_retry(remaining)

    def __enter__(self) -> "FocusTrap":
        return self.acquire()

    def __exit__(self, *exc) -> None:
        self.release()


# ---------------------------------------------------------
# Modal lifecycle
# ---------------------------------------------------------

class ModalLifecycle:
    """
    Holds scroll lock and focus trap for exactly as long as the modal is open.

    `on_dismiss` is called for Escape and backdrop clicks so the owner can run
    its own close path; without one the modal simply closes itself.
    """

    def __init__(self, resources: PageResources, dialog: Dialog,
                 on_dismiss: Optional[Callable[[], None]] = None):
        self.resources = resources
        self.dialog = dialog
        self.on_dismiss = on_dismiss
        self._stack: Optional[ExitStack] = None
        self._trap: Optional[FocusTrap] = None

    @property
    def is_open(self) -> bool:
        return self._stack is not None

    @property
    def page(self) -> Page:
        return self.resources.page

    def open(self, trigger: Optional[Element] = None) -> bool:
        if self._stack is not None:
            return False

        with ExitStack() as stack:
            page = stack.enter_context(self.resources.claimed_by(self))
            if not page.is_connected(self.dialog):
                page.root.append(self.dialog)
                stack.callback(self.dialog.detach)
            stack.enter_context(ScrollLock(page))
            self._trap = stack.enter_context(FocusTrap(page, self.dialog, return_focus=trigger))
            self._stack = stack.pop_all()

        logger.debug("Modal opened (trigger=%s)", trigger)
        return True

    def close(self) -> bool:
        if self._stack is None:
            return False
        stack, self._stack = self._stack, None
        self._trap = None
        stack.close()
        logger.debug("Modal closed")
        return True

    def set_return_focus(self, trigger: Element) -> None:
        """Re-targets where focus lands on close, e.g. another card opened the same modal."""
        if self._trap is not None:
            self._trap.return_focus = trigger

    def refresh_focus(self) -> None:
        if self._trap is not None:
            self._trap.refresh()

    def handle_key(self, key: str, shift: bool = False) -> bool:
        if self._stack is None:
            return False
        if key == "Escape":
            self._dismiss()
            return True
        if key == "Tab" and self._trap is not None:
            return self._trap.handle_tab(shift=shift)
        return False

    def click(self, target: Element) -> bool:
        """Backdrop clicks dismiss; clicks inside the dialog stop before the backdrop."""
        if self._stack is None or self.dialog.contains(target):
            return False
        self._dismiss()
        return True

    def _dismiss(self) -> None:
        if self.on_dismiss is not None:
            self.on_dismiss()
        else:
            self.close()

    def __enter__(self) -> "ModalLifecycle":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
