from decimal import Decimal

import pytest
import redis

from topup.core.cache import PRODUCTS_KEY, CacheService
from topup.models import ProductStatus
from topup.services import catalog_service
from topup.services.errors import NotFound, ValidationFailed


class FakeRedis:
    """Just enough of the redis client API for the cache service."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("down")

    def set(self, key, value, ex=None):
        raise redis.ConnectionError("down")

    def delete(self, *keys):
        raise redis.ConnectionError("down")


@pytest.fixture
def cache():
    return CacheService(FakeRedis(), default_ttl=60)


def test_products_are_served_from_cache(db_session, cache, product):
    first = catalog_service.list_products(db_session, cache)
    product.name = "Renamed directly in the database"
    db_session.commit()
    second = catalog_service.list_products(db_session, cache)

    assert first == second
    assert first[0]["price"] == "20000.00"
    assert PRODUCTS_KEY in cache.client.store


def test_admin_writes_invalidate_cache(db_session, cache, category, product):
    catalog_service.list_products(db_session, cache)

    catalog_service.update_product(db_session, cache, product.id, price=Decimal("25000"))
    db_session.commit()
    products = catalog_service.list_products(db_session, cache)

    assert products[0]["price"] == "25000.00"


def test_inactive_products_are_hidden(db_session, cache, product, instant_product):
    catalog_service.update_product(db_session, cache, product.id, status=ProductStatus.INACTIVE)
    db_session.commit()

    slugs = [p["slug"] for p in catalog_service.list_products(db_session, cache)]

    assert slugs == ["ml-weekly-pass"]


def test_create_product_and_category(db_session, cache, category):
    catalog_service.list_categories(db_session, cache)
    created = catalog_service.create_category(db_session, cache, name="Genshin", slug="genshin")
    product = catalog_service.create_product(
        db_session, cache, category_id=created.id, name="60 Crystals", slug="gi-60", price=Decimal("16000")
    )
    db_session.commit()

    names = [c["name"] for c in catalog_service.list_categories(db_session, cache)]
    assert "Genshin" in names
    assert catalog_service.get_product(db_session, cache, product.id)["category_id"] == created.id


def test_duplicate_slug(db_session, cache, category, product):
    with pytest.raises(ValidationFailed):
        catalog_service.create_product(
            db_session, cache, category_id=category.id, name="Dup", slug=product.slug, price=Decimal("1000")
        )


def test_unknown_product(db_session, cache):
    with pytest.raises(NotFound):
        catalog_service.get_product(db_session, cache, 999)


def test_redis_outage_falls_back_to_database(db_session, product):
    cache = CacheService(BrokenRedis())

    products = catalog_service.list_products(db_session, cache)

    assert [p["id"] for p in products] == [product.id]


def test_disabled_cache(db_session, product):
    cache = CacheService(None)

    assert not cache.enabled
    assert catalog_service.get_product(db_session, cache, product.id)["slug"] == product.slug
