from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import setup_logging
from .models import OpenRequest, QuickViewResponse, SelectRequest, SessionStartResponse
from .product_loader import threaded
from .quick_view import AddToBagStatus
from .session_manager import SessionManager, ShopperSession
from .shopify_client import ShopifyStorefrontClient

setup_logging()

app = FastAPI(title="Quick View API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

storefront = ShopifyStorefrontClient.from_env()
session_manager = SessionManager(threaded(storefront.fetch_product_by_handle))


def _session(session_id: str) -> ShopperSession:
    session = session_manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session expired or invalid")
    return session


@app.post("/quick_view/sessions", response_model=SessionStartResponse)
async def start_session():
    return SessionStartResponse(session_id=session_manager.create_session())


@app.delete("/quick_view/sessions/{session_id}", status_code=204)
async def end_session(session_id: str):
    _session(session_id)
    session_manager.end_session(session_id)


@app.post("/quick_view/sessions/{session_id}/open", response_model=QuickViewResponse)
async def open_quick_view(session_id: str, request: OpenRequest):
    session = _session(session_id)
    session.quick_view.open(request.handle, session.trigger_for(request.trigger))
    # HTTP callers get the settled product rather than a loading frame
    await session.quick_view.settle()
    return session.quick_view.view.to_response()


@app.post("/quick_view/sessions/{session_id}/close", response_model=QuickViewResponse)
async def close_quick_view(session_id: str):
    session = _session(session_id)
    session.quick_view.close()
    return session.quick_view.view.to_response()


@app.post("/quick_view/sessions/{session_id}/select", response_model=QuickViewResponse)
async def select_option(session_id: str, request: SelectRequest):
    session = _session(session_id)
    if not session.quick_view.select_option(request.name, request.value, product_id=request.product_id):
        raise HTTPException(status_code=409, detail="Option does not apply to the product on view")
    return session.quick_view.view.to_response()


@app.post("/quick_view/sessions/{session_id}/add_to_bag", response_model=QuickViewResponse)
async def add_to_bag(session_id: str):
    quick_view = _session(session_id).quick_view
    before = quick_view.view
    if before.add_disabled_reason is not None:
        raise HTTPException(status_code=409, detail=f"Cannot add to bag: {before.add_disabled_reason.value}")
    if before.add_to_bag_status is not AddToBagStatus.IDLE:
        raise HTTPException(status_code=409, detail=f"Add to bag already {before.add_to_bag_status.value}")
    if not await quick_view.add_to_bag():
        raise HTTPException(status_code=409, detail="Add to bag interrupted: quick view closed or product changed")
    return quick_view.view.to_response()


@app.get("/quick_view/sessions/{session_id}/view", response_model=QuickViewResponse)
async def get_view(session_id: str):
    return _session(session_id).quick_view.view.to_response()
