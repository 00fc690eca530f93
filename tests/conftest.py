import pytest

from smartbill.db.kvstore import MemoryKV
from smartbill.models import CatalogItem
from smartbill.services.cart import CartLedger
from smartbill.services.catalog import CatalogStore


class FailingKV(MemoryKV):
    """Reads work, every write fails like a full disk."""

    def set(self, key, value):
        raise OSError("quota exceeded")


def make_ids():
    counter = iter(range(1000000001, 1999999999))

    def factory(taken=()):
        while True:
            pid = str(next(counter))
            if pid not in taken:
                return pid

    return factory


@pytest.fixture
def kv():
    return MemoryKV()


@pytest.fixture
def failing_kv():
    return FailingKV()


@pytest.fixture
def catalog(kv):
    return CatalogStore(
        kv,
        [
            CatalogItem(id="1000000001", name="Laptop Computer", price=49999.99, stock=5),
            CatalogItem(id="1000000002", name="Wireless Mouse", price=1499.99, stock=100),
            CatalogItem(id="1000000003", name="USB Cable", price=499.99, stock=0),
        ],
        id_factory=make_ids(),
    )


@pytest.fixture
def cart(catalog, kv):
    return CartLedger(catalog, kv)
