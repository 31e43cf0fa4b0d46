"""Tests for the fetch-by-handle lifecycle."""

import asyncio

from quickview.product_loader import LoadStatus, ProductLoader, threaded
from quickview.shopify_client import CatalogError


def _run(coro):
    return asyncio.run(coro)


class TestRequest:
    """request / settle."""

    def test_loading_then_ready(self, fake_catalog):
        async def scenario():
            loader = ProductLoader(fake_catalog)
            state = loader.request("classic-tee")
            assert state.status is LoadStatus.LOADING
            assert state.product is None

            fake_catalog.release("classic-tee")
            return await loader.settle()

        state = _run(scenario())
        assert state.status is LoadStatus.READY
        assert state.product.handle == "classic-tee"
        assert state.error is None

    def test_not_found_is_ready_without_product(self, fake_catalog):
        async def scenario():
            fake_catalog.auto_release = True
            loader = ProductLoader(fake_catalog)
            loader.request("no-such-thing")
            return await loader.settle()

        state = _run(scenario())
        assert state.status is LoadStatus.READY
        assert state.product is None
        assert state.is_not_found is True

    def test_failure_is_error_state(self, fake_catalog):
        async def scenario():
            fake_catalog.auto_release = True
            fake_catalog.failures["classic-tee"] = CatalogError("Catalog responded with 502")
            loader = ProductLoader(fake_catalog)
            loader.request("classic-tee")
            return await loader.settle()

        state = _run(scenario())
        assert state.status is LoadStatus.ERROR
        assert state.product is None
        assert state.error == "Catalog responded with 502"
        assert state.is_not_found is False

    def test_no_automatic_retry_but_explicit_retry_works(self, fake_catalog):
        async def scenario():
            fake_catalog.auto_release = True
            fake_catalog.failures["classic-tee"] = CatalogError("boom")
            loader = ProductLoader(fake_catalog)
            loader.request("classic-tee")
            first = await loader.settle()

            del fake_catalog.failures["classic-tee"]
            loader.request("classic-tee")
            second = await loader.settle()
            return first, second

        first, second = _run(scenario())
        assert first.status is LoadStatus.ERROR
        assert second.status is LoadStatus.READY
        assert second.product.handle == "classic-tee"

    def test_request_none_clears_synchronously(self, fake_catalog):
        async def scenario():
            fake_catalog.auto_release = True
            loader = ProductLoader(fake_catalog)
            loader.request("classic-tee")
            await loader.settle()

            state = loader.request(None)
            assert state.status is LoadStatus.IDLE
            assert state.product is None
            return loader.state

        assert _run(scenario()).status is LoadStatus.IDLE

    def test_same_handle_in_flight_is_not_refetched(self, fake_catalog):
        async def scenario():
            loader = ProductLoader(fake_catalog)
            loader.request("classic-tee")
            await asyncio.sleep(0)
            loader.request("classic-tee")
            fake_catalog.release("classic-tee")
            await loader.settle()

        _run(scenario())
        assert fake_catalog.calls == ["classic-tee"]


class TestSupersede:
    """Only the latest handle may change state."""

    def test_stale_response_arriving_last_is_ignored(self, fake_catalog):
        async def scenario():
            seen = []
            loader = ProductLoader(fake_catalog, on_change=lambda s: seen.append((s.status, s.handle)))
            loader.request("classic-tee")
            await asyncio.sleep(0)
            loader.request("gift-card")
            await asyncio.sleep(0)

            fake_catalog.release("gift-card")
            await loader.settle()
            fake_catalog.release("classic-tee")
            await asyncio.sleep(0.01)
            return loader.state, seen

        state, seen = _run(scenario())
        assert state.status is LoadStatus.READY
        assert state.handle == "gift-card"
        assert state.product.handle == "gift-card"
        assert (LoadStatus.READY, "classic-tee") not in seen

    def test_stale_failure_is_ignored(self, fake_catalog):
        async def scenario():
            fake_catalog.failures["classic-tee"] = CatalogError("late failure")
            loader = ProductLoader(fake_catalog)
            loader.request("classic-tee")
            await asyncio.sleep(0)
            loader.request("gift-card")
            fake_catalog.release("classic-tee")
            fake_catalog.release("gift-card")
            return await loader.settle()

        state = _run(scenario())
        assert state.status is LoadStatus.READY
        assert state.product.handle == "gift-card"

    def test_threaded_fetch_late_result_is_dropped(self, catalog):
        """A blocking transport cannot be aborted; its late result must still be ignored."""
        import threading

        release_tee = threading.Event()

        def blocking_fetch(handle):
            if handle == "classic-tee":
                release_tee.wait(timeout=5)
            return catalog.get(handle)

        async def scenario():
            loader = ProductLoader(threaded(blocking_fetch))
            loader.request("classic-tee")
            await asyncio.sleep(0.01)
            loader.request("gift-card")
            await loader.settle()
            release_tee.set()
            await asyncio.sleep(0.05)
            return loader.state

        state = _run(scenario())
        assert state.product.handle == "gift-card"

    def test_generation_increases_per_request(self, fake_catalog):
        async def scenario():
            loader = ProductLoader(fake_catalog)
            start = loader.generation
            loader.request("classic-tee")
            loader.request("gift-card")
            loader.request(None)
            return loader.generation - start

        assert _run(scenario()) == 3


class TestCancel:
    """cancel on consumer teardown."""

    def test_cancel_abandons_in_flight_request(self, fake_catalog):
        async def scenario():
            loader = ProductLoader(fake_catalog)
            loader.request("classic-tee")
            await asyncio.sleep(0)
            loader.cancel()
            fake_catalog.release("classic-tee")
            await asyncio.sleep(0.01)
            return loader.state

        state = _run(scenario())
        assert state.status is LoadStatus.IDLE
        assert state.product is None

    def test_cancel_keeps_settled_product(self, fake_catalog):
        async def scenario():
            fake_catalog.auto_release = True
            loader = ProductLoader(fake_catalog)
            loader.request("gift-card")
            await loader.settle()
            loader.cancel()
            return loader.state

        assert _run(scenario()).product.handle == "gift-card"
