"""
Unit tests for ProductStore

The remote API is the in-memory FakeStorefrontAPI from conftest.
"""
import pytest
from unittest.mock import Mock

from storefront.core.exceptions import AuthorizationError, NetworkError, RemoteAPIError
from storefront.domain.product import Product
from storefront.services.entity_store import StoreState
from storefront.services.product_store import ProductStore

from factories import make_product


@pytest.fixture
def store(connector, cache):
    return ProductStore(connector, cache)


class TestProductFetch:
    """Test fetch_all and the cache interplay"""

    @pytest.mark.asyncio
    async def test_fetch_maps_server_response(self, api, store, local):
        """Test a successful fetch loads and persists the catalog"""
        # Arrange
        api.products = [make_product(1), make_product(2)]
        assert store.loading

        # Act
        products = await store.fetch_all()

        # Assert
        assert [p.id for p in products] == ["1", "2"]
        assert all(isinstance(p, Product) for p in products)
        assert not store.loading
        assert store.last_error is None
        assert [p["id"] for p in local.get_json("cache_products")] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_dropped(self, api, store):
        api.products = [make_product(1), make_product(1, name="Copy"), make_product(2)]

        products = await store.fetch_all()

        assert [p.id for p in products] == ["1", "2"]
        assert products[0].name == "Product 1"

    @pytest.mark.asyncio
    async def test_malformed_record_does_not_drop_catalog(self, api, store):
        """Test one invalid record is skipped and the rest of the response is kept"""
        # Arrange: third product has a variant without a name
        api.products = [make_product(1), make_product(2),
                        make_product(3, variants=[{"price": 10}])]

        # Act
        products = await store.fetch_all()

        # Assert
        assert [p.id for p in products] == ["1", "2"]
        assert store.last_error is None

    @pytest.mark.asyncio
    async def test_null_stock_reads_as_zero(self, api, store):
        api.products = [make_product(1, stock=None, price=None)]

        products = await store.fetch_all()

        assert products[0].stock == 0
        assert products[0].is_out_of_stock

    @pytest.mark.asyncio
    async def test_non_list_response_falls_back(self, api, store):
        api.products = {"error": "maintenance"}

        assert await store.fetch_all() == []
        assert isinstance(store.last_error, TypeError)

    @pytest.mark.asyncio
    async def test_refetch_with_products_on_screen_is_not_loading(self, api, store, clock):
        """Test loading stays False while cached products are shown"""
        api.products = [make_product(1)]
        loading_seen = []
        store.subscribe(lambda s: loading_seen.append(s.loading))

        await store.fetch_all()
        clock.advance(31)
        await store.fetch_all(force=True)

        assert loading_seen == [True, False, False, False]

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_network(self, api, store, clock):
        api.products = [make_product(1)]
        await store.fetch_all()
        clock.advance(60)

        await store.fetch_all()

        assert api.calls("GET", "/products") == 1

    @pytest.mark.asyncio
    async def test_forced_refetch_is_throttled(self, api, store, clock):
        api.products = [make_product(1)]
        await store.fetch_all()

        await store.fetch_all(force=True)
        clock.advance(31)
        await store.fetch_all(force=True)

        assert api.calls("GET", "/products") == 2

    @pytest.mark.asyncio
    async def test_network_failure_keeps_cached_products(self, api, store, clock):
        """Test a failed forced fetch keeps the five cached products"""
        # Arrange: five products fetched and cached
        api.products = [make_product(i) for i in range(1, 6)]
        await store.fetch_all()
        clock.advance(31)
        api.network_down = True

        # Act
        products = await store.fetch_all(force=True)

        # Assert
        assert len(products) == 5
        assert isinstance(store.last_error, NetworkError)
        assert store.state == StoreState.READY

    @pytest.mark.asyncio
    async def test_network_failure_without_cache_is_empty(self, api, store):
        api.network_down = True

        products = await store.fetch_all()

        assert products == []
        assert isinstance(store.last_error, NetworkError)
        assert not store.loading

    @pytest.mark.asyncio
    async def test_server_error_falls_back(self, api, store):
        api.fail_status[("GET", "/products")] = 500

        assert await store.fetch_all() == []
        assert isinstance(store.last_error, RemoteAPIError)
        assert store.last_error.status_code == 500

    @pytest.mark.asyncio
    async def test_authorization_error_propagates(self, api, store):
        api.fail_status[("GET", "/products")] = 401

        with pytest.raises(AuthorizationError):
            await store.fetch_all()

        assert store.state == StoreState.READY
        assert isinstance(store.last_error, AuthorizationError)


class TestProductCachePaint:
    """Test the first paint from persisted cache"""

    def test_paints_cached_products_at_construction(self, connector, cache, local, clock):
        local.set_json("cache_products", [make_product(1), make_product(2)])
        local.set("cache_time", repr(clock.now))

        store = ProductStore(connector, cache)

        assert len(store) == 2
        assert not store.loading

    def test_malformed_cache_is_discarded(self, connector, cache, local, clock):
        local.set_json("cache_products", {"id": "1", "name": "not a list"})
        local.set("cache_time", repr(clock.now))

        store = ProductStore(connector, cache)

        assert store.items == []
        assert store.loading
        assert local.get("cache_products") is None

    def test_bad_cached_record_keeps_the_rest(self, connector, cache, local, clock):
        local.set_json("cache_products", [make_product(1), {"name": "missing id"}])
        local.set("cache_time", repr(clock.now))

        store = ProductStore(connector, cache)

        assert [p.id for p in store.items] == ["1"]
        assert not store.loading

    @pytest.mark.asyncio
    async def test_cached_paint_still_verifies_with_server(self, api, connector, cache, local, clock):
        """Test a new session refetches even with a fresh persisted cache"""
        local.set_json("cache_products", [make_product(1)])
        local.set("cache_time", repr(clock.now))
        api.products = [make_product(1), make_product(2)]
        store = ProductStore(connector, cache)

        await store.init()

        assert len(store) == 2
        assert api.calls("GET", "/products") == 1


class TestProductMutations:
    """Test confirmed create, update and delete"""

    @pytest.mark.asyncio
    async def test_create_appends_confirmed_product(self, api, store, local):
        api.products = [make_product(1)]
        await store.fetch_all()

        created = await store.create({"name": "Palm Basket", "slug": "palm-basket", "price": 250})

        assert created.id == "101"
        assert [p.id for p in store.items] == ["1", "101"]
        assert [p["id"] for p in local.get_json("cache_products")] == ["1", "101"]

    @pytest.mark.asyncio
    async def test_failed_create_leaves_list_unchanged(self, api, store):
        api.products = [make_product(1)]
        await store.fetch_all()
        api.fail_status[("POST", "/products")] = 500

        with pytest.raises(RemoteAPIError):
            await store.create(make_product(None, name="Broken"))

        assert [p.id for p in store.items] == ["1"]

    @pytest.mark.asyncio
    async def test_update_keeps_reviews_missing_from_response(self, api, store):
        """Test reviews survive an update whose response omits them"""
        api.products = [make_product(1, reviews=[{"id": 5, "userName": "Asha", "rating": 5}])]
        await store.fetch_all()
        product = store.get("1")

        updated = await store.update(product.model_copy(update={"name": "Renamed"}))

        assert updated.name == "Renamed"
        assert store.get("1").name == "Renamed"
        assert [r.user_name for r in store.get("1").reviews] == ["Asha"]

    @pytest.mark.asyncio
    async def test_delete_after_confirmation(self, api, store):
        api.products = [make_product(1), make_product(2)]
        await store.fetch_all()

        await store.delete("1")

        assert [p.id for p in store.items] == ["2"]
        assert api.calls("DELETE", "/products/1") == 1

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_product(self, api, store):
        api.products = [make_product(1)]
        await store.fetch_all()
        api.fail_status[("DELETE", "/products/1")] = 403

        with pytest.raises(AuthorizationError):
            await store.delete("1")

        assert store.get("1") is not None


class TestProductOperations:
    """Test details, reviews, stock and listeners"""

    @pytest.mark.asyncio
    async def test_details_replace_list_entry(self, api, store):
        api.products = [make_product(1)]
        await store.fetch_all()

        product = await store.get_product_details("product-1")

        assert product.description == "Full description"
        assert store.find_by_slug("product-1").description == "Full description"

    @pytest.mark.asyncio
    async def test_details_not_found(self, api, store):
        with pytest.raises(RemoteAPIError) as exc_info:
            await store.get_product_details("missing")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_add_review_appends_to_product(self, api, store):
        api.products = [make_product(1)]
        await store.fetch_all()

        review = await store.add_review("1", {"userName": "Asha", "rating": 5, "comment": "Lovely"})

        assert review.product_id == "1"
        assert review.id is not None
        assert [r.comment for r in store.get("1").reviews] == ["Lovely"]

    @pytest.mark.asyncio
    async def test_added_review_survives_cached_fetch(self, api, store, clock):
        """Test a confirmed review is written through to the cache"""
        # Arrange
        api.products = [make_product(1)]
        await store.fetch_all()
        await store.add_review("1", {"userName": "Asha", "rating": 5, "comment": "Lovely"})

        # Act: served from the fresh cache
        clock.advance(60)
        await store.fetch_all()

        # Assert
        assert api.calls("GET", "/products") == 1
        assert [r.comment for r in store.get("1").reviews] == ["Lovely"]

    @pytest.mark.asyncio
    async def test_details_and_stock_survive_cached_fetch(self, api, store, clock):
        api.products = [make_product(1, stock=4)]
        await store.fetch_all()
        await store.get_product_details("product-1")
        store.update_stock("1", 1)

        clock.advance(60)
        await store.fetch_all()

        assert store.get("1").description == "Full description"
        assert store.get("1").stock == 1

    @pytest.mark.asyncio
    async def test_update_stock_is_local(self, api, store):
        api.products = [make_product(1, stock=4)]
        await store.fetch_all()
        requests_before = len(api.requests)

        store.update_stock("1", 0)
        store.update_stock("unknown", 3)

        assert store.get("1").is_out_of_stock
        assert len(api.requests) == requests_before

    @pytest.mark.asyncio
    async def test_listeners_are_notified(self, api, store):
        api.products = [make_product(1)]
        listener = Mock()
        unsubscribe = store.subscribe(listener)

        await store.fetch_all()
        unsubscribe()
        store.update_stock("1", 2)

        # LOADING, then the loaded list
        assert listener.call_count == 2
        listener.assert_called_with(store)

    def test_failing_listener_is_isolated(self, store):
        store.subscribe(Mock(side_effect=RuntimeError("render failed")))
        listener = Mock()
        store.subscribe(listener)

        store.replace_all([make_product(1)])

        listener.assert_called_once_with(store)
