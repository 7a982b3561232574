"""Tests for the holdings store and its key-value backends."""

import json
import os
import pytest
from decimal import Decimal

from cryptofolio.config import StorageConfig
from cryptofolio.holdings import HoldingsStore
from cryptofolio.storage import JsonFileStore, MemoryStore

HOUR_S = 60 * 60
NOW_S = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW_S) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStore()


@pytest.fixture
def store(storage, clock):
    return HoldingsStore(storage, clock=clock)


@pytest.fixture
def assets(make_asset):
    return [make_asset("btc", "50000"), make_asset("eth", "3000")]


def saved_envelope(storage, holdings, touched_s):
    config = StorageConfig()
    storage.set_item(config.HOLDINGS_KEY, json.dumps(holdings))
    storage.set_item(config.TIMESTAMP_KEY, str(int(touched_s * 1000)))


SAVED_HOLDING = {
    "id": "saved-1",
    "asset_id": "btc",
    "symbol": "btc",
    "name": "Bitcoin",
    "image": "",
    "amount": "1.5",
    "purchase_price": "30000",
}


class TestMemoryStore:
    def test_get_set_remove(self):
        storage = MemoryStore()
        assert storage.get_item("k") is None
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_remove_missing_key(self):
        MemoryStore().remove_item("missing")


class TestJsonFileStore:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "storage.json"
        JsonFileStore(path).set_item("k", "v")
        assert JsonFileStore(path).get_item("k") == "v"

    def test_missing_file(self, tmp_path):
        assert JsonFileStore(tmp_path / "nope.json").get_item("k") is None

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileStore(path)
        assert store.get_item("k") is None
        store.set_item("k", "v")
        assert store.get_item("k") == "v"

    def test_non_object_file_reads_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert JsonFileStore(path).get_item("0") is None

    def test_remove_item(self, tmp_path):
        store = JsonFileStore(tmp_path / "storage.json")
        store.set_item("a", "1")
        store.set_item("b", "2")
        store.remove_item("a")
        assert store.get_item("a") is None
        assert store.get_item("b") == "2"

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonFileStore(tmp_path / "storage.json")
        store.set_item("a", "1")
        assert [p.name for p in tmp_path.iterdir()] == ["storage.json"]

    def test_failed_open_closes_descriptor(self, tmp_path, monkeypatch):
        closed: list[int] = []
        real_close = os.close

        def failing_fdopen(fd, *args, **kwargs):
            raise OSError("cannot wrap descriptor")

        def recording_close(fd):
            closed.append(fd)
            real_close(fd)

        monkeypatch.setattr("cryptofolio.storage.os.fdopen", failing_fdopen)
        monkeypatch.setattr("cryptofolio.storage.os.close", recording_close)

        store = JsonFileStore(tmp_path / "storage.json")
        with pytest.raises(OSError, match="cannot wrap"):
            store.set_item("a", "1")

        assert len(closed) == 1
        assert list(tmp_path.iterdir()) == []


class TestLoad:
    def test_empty_storage(self, store):
        assert store.load() == []

    def test_fresh_envelope(self, store, storage, clock):
        saved_envelope(storage, [SAVED_HOLDING], clock.now - 47 * HOUR_S)
        holdings = store.load()
        assert len(holdings) == 1
        assert holdings[0].id == "saved-1"
        assert holdings[0].amount == Decimal("1.5")

    def test_expired_envelope_discarded(self, store, storage, clock):
        saved_envelope(storage, [SAVED_HOLDING], clock.now - 49 * HOUR_S)
        assert store.load() == []
        assert storage.items == {}

    def test_exactly_at_expiry_is_kept(self, store, storage, clock):
        saved_envelope(storage, [SAVED_HOLDING], clock.now - 48 * HOUR_S)
        assert len(store.load()) == 1

    def test_holdings_without_timestamp_discarded(self, store, storage):
        storage.set_item(StorageConfig().HOLDINGS_KEY, json.dumps([SAVED_HOLDING]))
        assert store.load() == []
        assert storage.items == {}

    def test_invalid_timestamp_discarded(self, store, storage):
        config = StorageConfig()
        storage.set_item(config.HOLDINGS_KEY, json.dumps([SAVED_HOLDING]))
        storage.set_item(config.TIMESTAMP_KEY, "yesterday")
        assert store.load() == []

    def test_corrupt_holdings_json(self, store, storage, clock):
        config = StorageConfig()
        storage.set_item(config.HOLDINGS_KEY, "[{broken")
        storage.set_item(config.TIMESTAMP_KEY, str(int(clock.now * 1000)))
        assert store.load() == []

    def test_non_list_holdings_json(self, store, storage, clock):
        saved_envelope(storage, {"id": "x"}, clock.now)
        assert store.load() == []

    def test_malformed_holding_skipped(self, store, storage, clock):
        saved_envelope(
            storage, [{"id": "bad"}, SAVED_HOLDING, {"amount": "1"}], clock.now
        )
        assert [h.id for h in store.load()] == ["saved-1"]

    @pytest.mark.parametrize(
        "field, value", [("amount", "NaN"), ("amount", "Infinity"), ("purchase_price", "-inf")]
    )
    def test_non_finite_holding_skipped(self, store, storage, clock, field, value):
        bad = dict(SAVED_HOLDING, id="bad", **{field: value})
        saved_envelope(storage, [bad, SAVED_HOLDING], clock.now)
        assert [h.id for h in store.load()] == ["saved-1"]

    def test_custom_expiry_window(self, storage, clock):
        store = HoldingsStore(storage, StorageConfig(EXPIRY_HOURS=1), clock=clock)
        saved_envelope(storage, [SAVED_HOLDING], clock.now - 2 * HOUR_S)
        assert store.load() == []


class TestAdd:
    def test_add_denormalizes_asset(self, store, assets):
        holding = store.add("btc", Decimal("2"), Decimal("40000"), assets)
        assert holding is not None
        assert holding.asset_id == "btc"
        assert holding.symbol == assets[0].symbol
        assert holding.name == assets[0].name
        assert holding.image == assets[0].image
        assert store.holdings == [holding]

    def test_add_unknown_asset_is_noop(self, store, storage, assets):
        assert store.add("doge", Decimal("1"), Decimal("1"), assets) is None
        assert store.holdings == []
        assert storage.items == {}

    def test_add_persists_envelope(self, store, storage, clock, assets):
        store.add("btc", Decimal("1"), Decimal("1"), assets)
        config = StorageConfig()
        assert storage.get_item(config.TIMESTAMP_KEY) == str(int(clock.now * 1000))
        saved = json.loads(storage.get_item(config.HOLDINGS_KEY))
        assert saved[0]["asset_id"] == "btc"

    def test_ids_are_unique_and_never_reused(self, store, assets):
        first = store.add("btc", Decimal("1"), Decimal("1"), assets)
        store.remove(first.id)
        second = store.add("btc", Decimal("1"), Decimal("1"), assets)
        assert second.id != first.id

    def test_keeps_insertion_order(self, store, assets):
        a = store.add("eth", Decimal("1"), Decimal("1"), assets)
        b = store.add("btc", Decimal("1"), Decimal("1"), assets)
        assert [h.id for h in store.holdings] == [a.id, b.id]

    def test_survives_reload(self, storage, clock, assets):
        HoldingsStore(storage, clock=clock).add("btc", Decimal("2"), Decimal("3"), assets)
        reloaded = HoldingsStore(storage, clock=clock).load()
        assert len(reloaded) == 1
        assert reloaded[0].amount == Decimal("2")


class TestUpdate:
    def test_update_amount_and_price(self, store, assets):
        holding = store.add("btc", Decimal("1"), Decimal("100"), assets)
        holding.amount = Decimal("3")
        holding.purchase_price = Decimal("200")
        assert store.update(holding) is True

        stored = store.get(holding.id)
        assert stored.amount == Decimal("3")
        assert stored.purchase_price == Decimal("200")

    def test_update_keeps_identity_fields(self, store, assets):
        holding = store.add("btc", Decimal("1"), Decimal("100"), assets)
        holding.asset_id = "eth"
        holding.name = "Renamed"
        store.update(holding)

        stored = store.get(holding.id)
        assert stored.asset_id == "btc"
        assert stored.name == assets[0].name

    def test_update_unknown_id(self, store, assets):
        holding = store.add("btc", Decimal("1"), Decimal("100"), assets)
        holding.id = "missing"
        assert store.update(holding) is False

    def test_update_refreshes_timestamp(self, store, storage, clock, assets):
        holding = store.add("btc", Decimal("1"), Decimal("100"), assets)
        clock.now += HOUR_S
        store.update(holding)
        assert storage.get_item(StorageConfig().TIMESTAMP_KEY) == str(int(clock.now * 1000))

    def test_returned_holdings_are_copies(self, store, assets):
        store.add("btc", Decimal("1"), Decimal("100"), assets)
        store.holdings[0].amount = Decimal("999")
        assert store.holdings[0].amount == Decimal("1")


class TestRemove:
    def test_remove(self, store, assets):
        a = store.add("btc", Decimal("1"), Decimal("1"), assets)
        b = store.add("eth", Decimal("1"), Decimal("1"), assets)
        assert store.remove(a.id) is True
        assert [h.id for h in store.holdings] == [b.id]

    def test_remove_nonexistent(self, store, assets):
        store.add("btc", Decimal("1"), Decimal("1"), assets)
        assert store.remove("missing") is False
        assert len(store) == 1

    def test_removing_last_holding_clears_envelope(self, store, storage, assets):
        holding = store.add("btc", Decimal("1"), Decimal("1"), assets)
        store.remove(holding.id)
        assert storage.items == {}


class TestPersist:
    def test_persist_empty_clears(self, store, storage, clock):
        saved_envelope(storage, [SAVED_HOLDING], clock.now)
        store.persist([])
        assert storage.items == {}

    def test_persist_with_file_store(self, tmp_path, clock, assets):
        path = tmp_path / "storage.json"
        store = HoldingsStore(JsonFileStore(path), clock=clock)
        store.add("eth", Decimal("0.25"), Decimal("1800"), assets)

        reloaded = HoldingsStore(JsonFileStore(path), clock=clock).load()
        assert reloaded[0].asset_id == "eth"
        assert reloaded[0].purchase_price == Decimal("1800")
