# Overview: Pytest coverage for fact-log replay, drift detection, repair and resuming half-applied facts.

from decimal import Decimal

from warung.models import AppSettings, CartItem, Customer, DebtPayment, PointHistory, Product, PAYMENT_DEBT, ProcurementItem
from warung.services import reconciliation_service, transaction_service
from warung.services.products_service import set_stock
from warung.services.transaction_service import SaleRequest
from warung.storage import append_fact, fetch, fetch_all
from warung.time_utils import utcnow


def _sale(shop, customer_id="C-GOLD", transaction_id=None):
    return transaction_service.commit_sale(shop, SaleRequest(
        items=(CartItem(product_id="P-MIE", product_name="Indomie", unit_name="Dus",
                        unit_price=Decimal("110000"), quantity=1, conversion=40),),
        payment_method=PAYMENT_DEBT, customer_id=customer_id, transaction_id=transaction_id,
    ))


def _tamper(store, entity_type, record_id, **changes):
    record = store.get(entity_type, record_id)
    record.update(changes)
    store.upsert(entity_type, record_id, record)


class TestReconcile:
    def test_fresh_shop_is_clean(self, shop):
        report = reconciliation_service.reconcile(shop)
        assert report.is_clean
        assert report.checked_products == 2
        assert report.checked_customers == 3

    def test_committed_activity_is_conserved(self, shop):
        _sale(shop)
        transaction_service.commit_procurement(
            shop, "S-1", [ProcurementItem(product_id="P-BERAS", quantity=4, buy_price=Decimal("78000"))],
        )
        transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("20000"))
        transaction_service.redeem_reward(shop, "C-SILVER", "R-MUG")
        set_stock(shop, "P-BERAS", 7, reason="stock opname")

        assert reconciliation_service.reconcile(shop).is_clean

    def test_detects_tampered_balances(self, shop, caplog):
        _sale(shop)
        _tamper(shop, Product.ENTITY_TYPE, "P-MIE", stock=999)
        _tamper(shop, Customer.ENTITY_TYPE, "C-GOLD", debt_balance="1", points_balance=5)

        report = reconciliation_service.reconcile(shop)

        found = {(d.record_id, d.field): (d.expected, d.actual) for d in report.drifts}
        assert found[("P-MIE", "stock")] == (160, 999)
        assert found[("C-GOLD", "debt_balance")] == (Decimal("104500"), Decimal("1"))
        assert found[("C-GOLD", "points_balance")] == (156, 5)
        assert not report.is_clean
        assert "drift" in caplog.text

        as_dict = report.to_dict()
        assert as_dict["is_clean"] is False
        assert {"entity_type": "products", "id": "P-MIE", "field": "stock",
                "expected": 160, "actual": 999} in as_dict["drifts"]

    def test_repair_overwrites_with_replayed_values(self, shop):
        _sale(shop)
        _tamper(shop, Product.ENTITY_TYPE, "P-MIE", stock=999)
        _tamper(shop, Customer.ENTITY_TYPE, "C-GOLD", points_balance=5)

        report = reconciliation_service.reconcile(shop, repair=True)

        assert report.repaired == 2
        assert fetch(shop, Product, "P-MIE").stock == 160
        assert fetch(shop, Customer, "C-GOLD").points_balance == 156
        assert reconciliation_service.reconcile(shop).is_clean


class TestResumePending:
    def test_completes_sale_recorded_without_effects(self, shop):
        tx = transaction_service.build_transaction(
            SaleRequest(
                items=(CartItem(product_id="P-BERAS", product_name="Beras", unit_name="Karung",
                                unit_price=Decimal("50000"), quantity=2),),
                payment_method=PAYMENT_DEBT, customer_id="C-GOLD", transaction_id="TX-HALF",
            ),
            fetch(shop, Customer, "C-GOLD"), AppSettings(),
        )
        append_fact(shop, tx)
        assert not reconciliation_service.reconcile(shop).is_clean

        summary = reconciliation_service.resume_pending(shop)

        assert summary["transactions"] == 1
        assert summary["skipped"] == 0
        assert fetch(shop, Product, "P-BERAS").stock == 18
        customer = fetch(shop, Customer, "C-GOLD")
        assert customer.debt_balance == Decimal("95000")
        assert customer.points_balance == 142
        assert reconciliation_service.reconcile(shop).is_clean

    def test_resume_twice_changes_nothing(self, shop):
        _sale(shop)
        transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("5000"))

        reconciliation_service.resume_pending(shop)
        reconciliation_service.resume_pending(shop)

        assert fetch(shop, Product, "P-MIE").stock == 160
        assert fetch(shop, Customer, "C-SILVER").debt_balance == Decimal("45000")
        assert len(fetch_all(shop, PointHistory)) == 1

    def test_logs_missing_redemption_history(self, shop):
        result = transaction_service.redeem_reward(shop, "C-SILVER", "R-MUG", redemption_id="REDEEM-LOST")
        shop.delete(PointHistory.ENTITY_TYPE, result.entry.id)
        assert not reconciliation_service.reconcile(shop).is_clean

        summary = reconciliation_service.resume_pending(shop)

        assert summary["redemptions_logged"] == 1
        history = fetch_all(shop, PointHistory)
        assert [(h.id, h.points, h.reference_id) for h in history] == [("REDEEM-LOST", 100, "R-MUG")]
        assert reconciliation_service.reconcile(shop).is_clean

    def test_payment_for_deleted_customer_is_skipped(self, shop, caplog):
        append_fact(shop, DebtPayment(id="PAY-ORPHAN", customer_id="C-GONE",
                                      amount=Decimal("1000"), timestamp=utcnow()))

        summary = reconciliation_service.resume_pending(shop)

        assert summary["skipped"] == 1
        assert "PAY-ORPHAN" in caplog.text

    def test_redemption_stopped_after_debit_is_reported_then_retried(self, shop, caplog):
        customer = shop.get(Customer.ENTITY_TYPE, "C-SILVER")
        _tamper(shop, Customer.ENTITY_TYPE, "C-SILVER",
                points_balance=customer["points_balance"] - 100,
                applied_facts=customer["applied_facts"] + ["REDEEM-HALF"])
        assert not reconciliation_service.reconcile(shop).is_clean

        summary = reconciliation_service.resume_pending(shop)

        assert summary["unfinished_redemptions"] == [{"customer_id": "C-SILVER", "redemption_id": "REDEEM-HALF"}]
        assert "REDEEM-HALF" in caplog.text

        result = transaction_service.redeem_reward(shop, "C-SILVER", "R-MUG", redemption_id="REDEEM-HALF")

        assert result.customer.points_balance == 350
        assert result.reward.stock == 0
        assert reconciliation_service.reconcile(shop).is_clean
        assert reconciliation_service.unfinished_redemptions(shop) == []
