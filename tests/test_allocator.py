from datetime import date
from decimal import Decimal
import sqlite3

import pytest

from angadi_pos.database import get_connection
from angadi_pos.database.repositories import InventoryRepo, Item, ItemsRepo
from angadi_pos.errors import (
    ConcurrentModificationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from angadi_pos.modules.inventory.allocation import Batch, fefo_order, plan_fefo

D = Decimal


@pytest.fixture()
def three_batches(ids, stock):
    """Soap: 5 expiring Jan, 5 expiring Jun, 5 with no expiry (inserted out of order)."""
    no_expiry = stock(ids["soap"], "5")
    june = stock(ids["soap"], "5", "2025-06-01")
    january = stock(ids["soap"], "5", "2025-01-01")
    return january, june, no_expiry


def _qty(repo, batch_id):
    return repo.get_batch(batch_id)["quantity"]


def test_fefo_consumes_soonest_expiry_first(conn, ids, three_batches):
    """7 from [Jan:5, Jun:5, none:5] leaves [0, 3, 5]."""
    repo = InventoryRepo(conn)
    january, june, no_expiry = three_batches

    result = repo.deduct(ids["soap"], 7)

    assert result.deducted == D("7")
    assert result.remaining_shortfall == D("0")
    assert [a.batch_id for a in result.allocations] == [january, june]
    assert [_qty(repo, b) for b in three_batches] == [D("0"), D("3"), D("5")]
    assert repo.total_stock(ids["soap"]) == D("8")


def test_shortfall_raises_and_touches_nothing(conn, ids, three_batches):
    repo = InventoryRepo(conn)
    with pytest.raises(InsufficientStockError) as exc:
        repo.deduct(ids["soap"], "16")
    assert exc.value.item_id == ids["soap"]
    assert exc.value.requested == D("16")
    assert exc.value.available == D("15")
    assert [_qty(repo, b) for b in three_batches] == [D("5")] * 3
    assert all(repo.get_batch(b)["version"] == 0 for b in three_batches)


def test_exact_total_empties_every_batch(conn, ids, three_batches):
    repo = InventoryRepo(conn)
    repo.deduct(ids["soap"], 15)
    assert repo.total_stock(ids["soap"]) == D("0")
    assert repo.list_batches(ids["soap"], include_empty=False) == []
    # depleted batches are kept, never deleted
    assert len(repo.list_batches(ids["soap"])) == 3


def test_best_effort_reports_shortfall(conn, ids, three_batches):
    repo = InventoryRepo(conn)
    result = repo.deduct_best_effort(ids["soap"], 20)
    assert result.deducted == D("15")
    assert result.remaining_shortfall == D("5")
    assert repo.total_stock(ids["soap"]) == D("0")


def test_every_write_bumps_version(conn, ids, three_batches):
    repo = InventoryRepo(conn)
    january = three_batches[0]
    repo.deduct(ids["soap"], 1)
    repo.deduct(ids["soap"], 1)
    assert repo.get_batch(january)["version"] == 2


def test_fractional_quantities(conn, ids, stock):
    repo = InventoryRepo(conn)
    stock(ids["rice"], "2.5", "2025-03-01")
    stock(ids["rice"], "1.25")
    repo.deduct(ids["rice"], "3.1")
    assert repo.total_stock(ids["rice"]) == D("0.65")


@pytest.mark.parametrize("bad", [0, "-1", "NaN", "Infinity", "ten"])
def test_requested_quantity_must_be_positive_and_finite(conn, ids, three_batches, bad):
    with pytest.raises(ValidationError):
        InventoryRepo(conn).deduct(ids["soap"], bad)


def test_stale_plan_cannot_commit_and_rolls_back_all_writes(conn, ids, stock):
    """Plan takes from two batches; the second changed meanwhile."""
    repo = InventoryRepo(conn)
    first = stock(ids["soap"], "5", "2025-01-01")
    second = stock(ids["soap"], "5", "2025-06-01")

    plan = repo.plan(ids["soap"], 7)
    assert [a.batch_id for a in plan.allocations] == [first, second]

    with conn:
        conn.execute("UPDATE inventory_batches SET version = version + 1 WHERE batch_id = ?", (second,))

    with pytest.raises(ConcurrentModificationError) as exc:
        repo.apply(plan)
    assert exc.value.batch_id == second
    assert _qty(repo, first) == D("5")
    assert _qty(repo, second) == D("5")


def test_race_between_two_connections(tmp_path):
    """A deduction committed on another connection invalidates an older plan."""
    db = tmp_path / "shop.db"
    c1 = get_connection(db)
    c2 = get_connection(db)
    try:
        item_id = ItemsRepo(c1).create(Item(None, "Tea 250g", gst_rate=D("5")))
        InventoryRepo(c1).receive(item_id, "10")

        plan = InventoryRepo(c1).plan(item_id, 4)
        InventoryRepo(c2).deduct(item_id, 3)

        with pytest.raises(ConcurrentModificationError):
            InventoryRepo(c1).apply(plan)
        assert InventoryRepo(c1).total_stock(item_id) == D("7")
        assert not c1.in_transaction

        # a fresh plan goes through
        InventoryRepo(c1).deduct(item_id, 4)
        assert InventoryRepo(c2).total_stock(item_id) == D("3")
    finally:
        c1.close()
        c2.close()


def test_restock_always_creates_a_returned_batch(conn, ids, stock):
    repo = InventoryRepo(conn)
    existing = stock(ids["soap"], "5")

    new_id = repo.restock(ids["soap"], "2", purchase_rate="90", source_id="RET-1", batch_number="RET-RET-1")

    assert new_id != existing
    batch = repo.get_batch(new_id)
    assert batch["status"] == "returned"
    assert batch["source_type"] == "return"
    assert batch["quantity"] == D("2")
    assert _qty(repo, existing) == D("5")
    assert repo.total_stock(ids["soap"]) == D("7")


def test_restock_validates_quantity_and_item(conn, ids):
    repo = InventoryRepo(conn)
    with pytest.raises(ValidationError):
        repo.restock(ids["soap"], 0)
    with pytest.raises(NotFoundError):
        repo.restock(99999, 1)


def test_receive_creates_normal_batch_with_default_number(conn, ids):
    repo = InventoryRepo(conn)
    batch = repo.get_batch(repo.receive(ids["milk"], "12", purchase_rate="21.5"))
    assert batch["status"] == "normal"
    assert batch["purchase_rate"] == D("21.5")
    assert batch["batch_number"].startswith("B-")


def test_quantity_check_constraint_blocks_negative_rows(conn, ids, stock):
    batch_id = stock(ids["soap"], "1")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("UPDATE inventory_batches SET quantity = '-1' WHERE batch_id = ?", (batch_id,))


def test_stock_summary_and_low_stock(conn, ids, stock):
    repo = InventoryRepo(conn)
    stock(ids["soap"], "4")
    stock(ids["rice"], "30")
    stock(ids["milk"], "25")

    summary = {r["item_id"]: r for r in repo.stock_summary()}
    assert summary[ids["soap"]]["total_stock"] == D("4")
    assert summary[ids["soap"]]["is_low"] is True       # 4 <= 5
    assert summary[ids["rice"]]["is_low"] is False
    assert summary[ids["milk"]]["is_low"] is False      # 25 > 20

    assert [r["item_id"] for r in repo.low_stock_items()] == [ids["soap"]]


def test_expiring_batches_window(conn, ids, stock):
    repo = InventoryRepo(conn)
    expired = stock(ids["milk"], "5", "2025-09-30")
    soon = stock(ids["milk"], "5", "2025-10-20")
    stock(ids["milk"], "5", "2026-01-01")
    stock(ids["milk"], "5")

    rows = repo.expiring_batches(within_days=30, as_of="2025-10-01")
    assert [r["batch_id"] for r in rows] == [expired, soon]
    assert rows[0]["is_expired"] is True
    assert rows[1]["is_expired"] is False


def test_plan_fefo_is_pure_and_breaks_ties_by_batch_id():
    batches = [
        Batch(batch_id=9, item_id=1, quantity=D("2"), expiry_date=date(2025, 5, 1)),
        Batch(batch_id=3, item_id=1, quantity=D("2"), expiry_date=date(2025, 5, 1)),
        Batch(batch_id=1, item_id=1, quantity=D("2")),
        Batch(batch_id=2, item_id=1, quantity=D("0"), expiry_date=date(2024, 1, 1)),
    ]
    assert [b.batch_id for b in fefo_order(batches)] == [2, 3, 9, 1]

    plan = plan_fefo(1, batches, D("5"))
    assert [(a.batch_id, a.take) for a in plan.allocations] == [(3, D("2")), (9, D("2")), (1, D("1"))]
    assert plan.available == D("6")
    assert plan.is_complete

    short = plan_fefo(1, batches, D("10"))
    assert short.deducted == D("6")
    assert short.shortfall == D("4")
    assert not short.is_complete
