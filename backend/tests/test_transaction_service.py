# Overview: Pytest coverage for pricing, payment validation and sale/procurement/payment commits.

"""
Transaction Service Tests

Covers the sale lifecycle end to end against both store backends:
- pricing and payment rules (pure functions)
- validation failures leave no trace in the store
- commit effects on stock, debt, spend and points
- idempotent resubmission with the same fact id
"""

from decimal import Decimal

import pytest

from warung.errors import (
    CustomerRequired,
    InsufficientPayment,
    InvalidPayment,
    NotFoundError,
    ValidationError,
)
from warung.models import (
    AppSettings,
    CartItem,
    CashPayment,
    Customer,
    DebtCredit,
    DebtPayment,
    PointHistory,
    Procurement,
    ProcurementItem,
    Product,
    QrisPayment,
    SplitPayment,
    Transaction,
    PAYMENT_CASH,
    PAYMENT_DEBT,
    PAYMENT_QRIS,
    PAYMENT_SPLIT,
)
from warung.services import transaction_service
from warung.services.transaction_service import SaleRequest
from warung.storage import append_fact, fetch, fetch_all


def _beras(quantity=1, price="85000") -> CartItem:
    return CartItem(
        product_id="P-BERAS", product_name="Beras", unit_name="Karung",
        unit_price=Decimal(price), quantity=quantity, buy_price=Decimal("78000"),
    )


def _mie_dus(quantity=1) -> CartItem:
    return CartItem(
        product_id="P-MIE", product_name="Indomie", unit_name="Dus",
        unit_price=Decimal("110000"), quantity=quantity, conversion=40,
    )


class TestPriceCart:
    def test_gold_discount_and_points(self):
        """Subtotal 100000, gold 5% -> discount 5000, total 95000, 142 points."""
        customer = Customer(id="C", name="Budi", tier="Gold", is_member=True)
        priced = transaction_service.price_cart([_beras(2, "50000")], customer, AppSettings())

        assert priced.subtotal == Decimal("100000")
        assert priced.discount_amount == Decimal("5000")
        assert priced.total == Decimal("95000")
        assert priced.points_earned == 142

    def test_walk_in_pays_full_price(self):
        priced = transaction_service.price_cart([_beras(2, "50000")], None, AppSettings())
        assert priced.discount_amount == 0
        assert priced.total == Decimal("100000")
        assert priced.points_earned == 0

    def test_pricing_is_deterministic(self):
        customer = Customer(id="C", name="Siti", tier="Silver", is_member=True)
        items = [_beras(1), _mie_dus(2)]
        assert (transaction_service.price_cart(items, customer, AppSettings())
                == transaction_service.price_cart(items, customer, AppSettings()))


class TestResolvePayment:
    customer = Customer(id="C", name="Siti")

    def test_cash_exact(self):
        outcome = transaction_service.resolve_payment(PAYMENT_CASH, Decimal("50000"), Decimal("50000"), None)
        assert outcome == CashPayment(cash_paid=Decimal("50000"), change=Decimal("0"))

    def test_cash_change(self):
        outcome = transaction_service.resolve_payment(PAYMENT_CASH, Decimal("47500"), Decimal("50000"), None)
        assert outcome.change == Decimal("2500")
        assert outcome.debt_amount == 0

    def test_cash_insufficient(self):
        with pytest.raises(InsufficientPayment):
            transaction_service.resolve_payment(PAYMENT_CASH, Decimal("50000"), Decimal("40000"), None)

    def test_qris_pays_total(self):
        outcome = transaction_service.resolve_payment(PAYMENT_QRIS, Decimal("50000"), None, None)
        assert outcome == QrisPayment(amount=Decimal("50000"))
        assert outcome.cash_paid == Decimal("50000")
        assert outcome.change == 0

    def test_debt_requires_customer(self):
        with pytest.raises(CustomerRequired):
            transaction_service.resolve_payment(PAYMENT_DEBT, Decimal("50000"), None, None)

    def test_debt_full_amount(self):
        outcome = transaction_service.resolve_payment(PAYMENT_DEBT, Decimal("50000"), None, self.customer)
        assert outcome == DebtCredit(amount=Decimal("50000"))
        assert outcome.cash_paid == 0

    def test_split(self):
        outcome = transaction_service.resolve_payment(PAYMENT_SPLIT, Decimal("80000"), Decimal("30000"), self.customer)
        assert outcome == SplitPayment(cash_paid=Decimal("30000"), debt_amount=Decimal("50000"))

    @pytest.mark.parametrize("cash", ["0", "80000", "90000"])
    def test_split_cash_must_be_strictly_between(self, cash):
        with pytest.raises(InvalidPayment):
            transaction_service.resolve_payment(PAYMENT_SPLIT, Decimal("80000"), Decimal(cash), self.customer)

    def test_split_requires_customer(self):
        with pytest.raises(CustomerRequired):
            transaction_service.resolve_payment(PAYMENT_SPLIT, Decimal("80000"), Decimal("30000"), None)

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            transaction_service.resolve_payment("barter", Decimal("1"), None, None)


class TestSaleRequestParsing:
    def test_from_dict_coerces_cash_string(self):
        request = SaleRequest.from_dict({
            "items": [_beras().to_dict()],
            "payment_method": "cash",
            "cash_paid": "50000",
        })
        assert request.cash_paid == Decimal("50000")
        assert request.items[0].product_id == "P-BERAS"

    def test_items_must_be_list(self):
        with pytest.raises(ValidationError):
            SaleRequest.from_dict({"items": "nope", "payment_method": "cash"})


class TestCommitSale:
    def test_cash_sale(self, shop):
        receipt = transaction_service.commit_sale(shop, SaleRequest(
            items=(_mie_dus(1),), payment_method=PAYMENT_CASH, cash_paid=Decimal("110000"),
        ))

        assert receipt.transaction.change == 0
        assert receipt.customer is None
        assert fetch(shop, Product, "P-MIE").stock == 160
        assert fetch(shop, Transaction, receipt.transaction.id) == receipt.transaction

    def test_insufficient_cash_mutates_nothing(self, shop):
        with pytest.raises(InsufficientPayment):
            transaction_service.commit_sale(shop, SaleRequest(
                items=(_beras(1, "50000"),), payment_method=PAYMENT_CASH, cash_paid=Decimal("40000"),
            ))

        assert fetch_all(shop, Transaction) == []
        assert fetch(shop, Product, "P-BERAS").stock == 20

    def test_split_sale_updates_debt_and_spend(self, shop):
        """Total 80000, cash 30000 -> debt +50000, spend +80000."""
        receipt = transaction_service.commit_sale(shop, SaleRequest(
            items=(_beras(2, "40000"),), payment_method=PAYMENT_SPLIT,
            cash_paid=Decimal("30000"), customer_id="C-BRONZE",
        ))

        assert receipt.transaction.debt_amount == Decimal("50000")
        customer = fetch(shop, Customer, "C-BRONZE")
        assert customer.debt_balance == Decimal("50000")
        assert customer.total_spent == Decimal("80000")
        assert customer.points_balance == 0
        assert fetch(shop, Product, "P-BERAS").stock == 18

    def test_member_sale_earns_points_with_history(self, shop):
        receipt = transaction_service.commit_sale(shop, SaleRequest(
            items=(_beras(2, "50000"),), payment_method=PAYMENT_QRIS, customer_id="C-GOLD",
        ))

        tx = receipt.transaction
        assert tx.total_amount == Decimal("95000")
        assert tx.discount_amount == Decimal("5000")
        assert tx.points_earned == 142

        customer = fetch(shop, Customer, "C-GOLD")
        assert customer.points_balance == 142
        assert customer.total_spent == Decimal("95000")
        assert customer.debt_balance == 0

        history = fetch_all(shop, PointHistory)
        assert [(h.id, h.points, h.reference_id) for h in history] == [(f"EARN-{tx.id}", 142, tx.id)]

    def test_debt_sale_without_customer_is_rejected(self, shop):
        with pytest.raises(CustomerRequired):
            transaction_service.commit_sale(shop, SaleRequest(items=(_beras(),), payment_method=PAYMENT_DEBT))
        assert fetch_all(shop, Transaction) == []

    def test_unknown_customer_is_rejected_before_writing(self, shop):
        with pytest.raises(NotFoundError):
            transaction_service.commit_sale(shop, SaleRequest(
                items=(_beras(),), payment_method=PAYMENT_DEBT, customer_id="C-GONE",
            ))
        assert fetch_all(shop, Transaction) == []

    def test_empty_cart_is_rejected(self, shop):
        with pytest.raises(ValidationError):
            transaction_service.commit_sale(shop, SaleRequest(items=(), payment_method=PAYMENT_QRIS))

    def test_missing_product_is_reported_not_fatal(self, shop):
        ghost = CartItem(product_id="P-GONE", product_name="Ghost", unit_name="Pcs",
                         unit_price=Decimal("1000"), quantity=1)
        receipt = transaction_service.commit_sale(shop, SaleRequest(
            items=(ghost, _beras()), payment_method=PAYMENT_QRIS,
        ))
        assert [w.product_id for w in receipt.warnings] == ["P-GONE"]
        assert fetch(shop, Product, "P-BERAS").stock == 19

    def test_resubmitted_sale_applies_once(self, shop):
        request = SaleRequest(
            items=(_beras(1),), payment_method=PAYMENT_DEBT, customer_id="C-SILVER", transaction_id="TX-RETRY",
        )
        first = transaction_service.commit_sale(shop, request)
        second = transaction_service.commit_sale(shop, request)

        assert not first.replayed
        assert second.replayed
        assert second.transaction == first.transaction
        assert len(fetch_all(shop, Transaction)) == 1
        assert fetch(shop, Product, "P-BERAS").stock == 19
        customer = fetch(shop, Customer, "C-SILVER")
        # 85000 less 2% silver discount
        assert customer.debt_balance == Decimal("50000") + Decimal("83300")
        assert customer.points_balance == 450 + 99  # floor(83 * 1.2)
        assert len(fetch_all(shop, PointHistory)) == 1

    def test_resubmission_completes_half_applied_sale(self, shop):
        """Fact written, then the process died: resubmitting applies the missing effects."""
        customer = fetch(shop, Customer, "C-GOLD")
        tx = transaction_service.build_transaction(
            SaleRequest(items=(_beras(2, "50000"),), payment_method=PAYMENT_QRIS,
                        customer_id="C-GOLD", transaction_id="TX-CRASH"),
            customer, AppSettings(),
        )
        assert append_fact(shop, tx)

        receipt = transaction_service.commit_sale(shop, SaleRequest(
            items=(_beras(2, "50000"),), payment_method=PAYMENT_QRIS,
            customer_id="C-GOLD", transaction_id="TX-CRASH",
        ))

        assert receipt.replayed
        assert fetch(shop, Product, "P-BERAS").stock == 18
        assert fetch(shop, Customer, "C-GOLD").points_balance == 142

    def test_one_change_event_per_collection(self, shop):
        events = []
        shop.subscribe("products", events.append)
        shop.subscribe("customers", events.append)

        transaction_service.commit_sale(shop, SaleRequest(
            items=(_beras(1), _mie_dus(1)), payment_method=PAYMENT_DEBT, customer_id="C-GOLD",
        ))

        assert sorted(e.entity_type for e in events) == ["customers", "products"]
        assert all(e.warung_id == shop.warung_id for e in events)


class TestPreviewSale:
    def test_preview_matches_commit(self, shop):
        items = (_beras(1), _mie_dus(1))
        preview = transaction_service.preview_sale(shop, items, "C-SILVER")
        receipt = transaction_service.commit_sale(shop, SaleRequest(
            items=items, payment_method=PAYMENT_QRIS, customer_id="C-SILVER",
        ))
        assert preview.total == receipt.transaction.total_amount
        assert preview.points_earned == receipt.transaction.points_earned

    def test_preview_writes_nothing(self, shop):
        transaction_service.preview_sale(shop, (_beras(1),), None)
        assert fetch_all(shop, Transaction) == []
        assert fetch(shop, Product, "P-BERAS").stock == 20


class TestCommitProcurement:
    def test_restock_adds_base_units(self, shop):
        receipt = transaction_service.commit_procurement(
            shop, "S-1", [ProcurementItem(product_id="P-MIE", quantity=200, buy_price=Decimal("2550"))],
        )

        po = receipt.procurement
        assert po.supplier_name == "Toko Grosir Jaya"
        assert po.items[0].product_name == "Indomie Goreng"
        assert po.items[0].unit_name == "Pcs"
        assert po.total_amount == Decimal("510000")
        assert fetch(shop, Product, "P-MIE").stock == 400
        assert fetch(shop, Procurement, po.id) == po

    def test_unknown_supplier(self, shop):
        with pytest.raises(NotFoundError):
            transaction_service.commit_procurement(
                shop, "S-GONE", [ProcurementItem(product_id="P-MIE", quantity=1, buy_price=Decimal("1"))],
            )
        assert fetch_all(shop, Procurement) == []

    def test_resubmitted_procurement_applies_once(self, shop):
        items = [ProcurementItem(product_id="P-BERAS", quantity=10, buy_price=Decimal("78000"))]
        transaction_service.commit_procurement(shop, "S-1", items, procurement_id="PO-1")
        receipt = transaction_service.commit_procurement(shop, "S-1", items, procurement_id="PO-1")
        assert receipt.replayed
        assert fetch(shop, Product, "P-BERAS").stock == 30


class TestCommitDebtPayment:
    def test_payment_reduces_debt(self, shop):
        receipt = transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("20000"), note="cicilan")
        assert receipt.customer.debt_balance == Decimal("30000")
        assert fetch(shop, DebtPayment, receipt.payment.id).note == "cicilan"

    def test_overpayment_rejected_by_default(self, shop):
        with pytest.raises(InvalidPayment):
            transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("60000"))
        assert fetch_all(shop, DebtPayment) == []
        assert fetch(shop, Customer, "C-SILVER").debt_balance == Decimal("50000")

    def test_overpayment_allowed_explicitly(self, shop):
        transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("60000"), allow_overpayment=True)
        assert fetch(shop, Customer, "C-SILVER").debt_balance == Decimal("-10000")

    def test_non_positive_amount(self, shop):
        with pytest.raises(InvalidPayment):
            transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("0"))

    def test_resubmitted_payment_applies_once(self, shop):
        transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("10000"), payment_id="PAY-1")
        receipt = transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("10000"), payment_id="PAY-1")
        assert receipt.replayed
        assert fetch(shop, Customer, "C-SILVER").debt_balance == Decimal("40000")


class TestRedeemReward:
    def test_delegates_to_loyalty_ledger(self, shop):
        result = transaction_service.redeem_reward(shop, "C-SILVER", "R-MUG")
        assert result.customer.points_balance == 350
        assert result.entry.reference_id == "R-MUG"
