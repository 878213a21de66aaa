# Overview: Pytest coverage for product, customer, supplier and reward master data services.

from decimal import Decimal

import pytest

from warung.errors import ConflictError, NotFoundError, ValidationError
from warung.models import Customer, Product, ProcurementItem
from warung.services import customers_service, products_service, rewards_service, supplier_service
from warung.services import transaction_service
from warung.storage import fetch


class TestProducts:
    def test_defaults_to_single_base_unit(self, store):
        product = products_service.create_product(store, {"sku": "111", "name": "Teh Pucuk", "base_unit": "Botol"})
        assert product.id.startswith("P-")
        assert [u.name for u in product.units] == ["Botol"]
        assert product.category == "Umum"
        assert product.opening_stock == 0

    def test_duplicate_sku_conflicts(self, shop):
        with pytest.raises(ConflictError):
            products_service.create_product(shop, {"sku": "899123456783", "name": "Copy", "base_unit": "Pcs"})

    def test_duplicate_unit_names_rejected(self, store):
        with pytest.raises(ValidationError):
            products_service.create_product(store, {
                "sku": "1", "name": "X", "base_unit": "Pcs",
                "units": [{"name": "Pcs", "sell_price": 1}, {"name": "Pcs", "sell_price": 2}],
            })

    def test_unknown_supplier_rejected(self, store):
        with pytest.raises(NotFoundError):
            products_service.create_product(store, {"sku": "1", "name": "X", "base_unit": "Pcs", "supplier_id": "S-X"})

    def test_update_cannot_touch_stock(self, shop):
        with pytest.raises(ValidationError):
            products_service.update_product(shop, "P-MIE", {"stock": 1})

    def test_update_master_data(self, shop):
        product = products_service.update_product(shop, "P-MIE", {"name": "Indomie Goreng Spesial", "min_stock_alert": 10})
        assert product.name == "Indomie Goreng Spesial"
        assert fetch(shop, Product, "P-MIE").min_stock_alert == 10
        assert fetch(shop, Product, "P-MIE").stock == 200

    def test_find_by_sku(self, shop):
        assert products_service.find_by_sku(shop, "899123456781").id == "P-BERAS"
        assert products_service.find_by_sku(shop, "000") is None

    def test_low_stock(self, shop):
        products_service.set_stock(shop, "P-BERAS", 5)
        assert [p.id for p in products_service.low_stock_products(shop)] == ["P-BERAS"]

    def test_unset_threshold_falls_back_to_five(self, store):
        products_service.create_product(store, {"id": "P-1", "sku": "1", "name": "X", "base_unit": "Pcs", "stock": 5})
        assert [p.id for p in products_service.low_stock_products(store)] == ["P-1"]

    def test_set_stock_moves_opening_stock(self, shop):
        product = products_service.set_stock(shop, "P-MIE", 150, reason="stock opname")
        assert product.stock == 150
        assert product.opening_stock == 150

    def test_list_by_category(self, store):
        products_service.create_product(store, {"sku": "1", "name": "B", "base_unit": "Pcs", "category": "Minuman"})
        products_service.create_product(store, {"sku": "2", "name": "A", "base_unit": "Pcs", "category": "Minuman"})
        products_service.create_product(store, {"sku": "3", "name": "C", "base_unit": "Pcs"})
        assert [p.name for p in products_service.list_products(store, category="Minuman")] == ["A", "B"]

    def test_delete(self, shop):
        assert products_service.delete_product(shop, "P-MIE") is True
        assert products_service.delete_product(shop, "P-MIE") is False


class TestCustomers:
    def test_member_gets_member_id(self, store):
        customer = customers_service.create_customer(store, {"name": "Rina", "is_member": True, "tier": "gold"})
        assert customer.tier == "Gold"
        assert customer.member_id.startswith("MBR")
        assert customer.joined_at is not None

    def test_opening_balances_recorded(self, shop):
        customer = fetch(shop, Customer, "C-SILVER")
        assert customer.opening_debt == Decimal("50000")
        assert customer.opening_points == 450

    def test_invalid_tier(self, store):
        with pytest.raises(ValidationError):
            customers_service.create_customer(store, {"name": "X", "tier": "Platinum"})

    def test_balances_are_not_patchable(self, shop):
        with pytest.raises(ValidationError):
            customers_service.update_customer(shop, "C-SILVER", {"debt_balance": 0})
        assert fetch(shop, Customer, "C-SILVER").debt_balance == Decimal("50000")

    def test_enroll_member(self, shop):
        customer = customers_service.enroll_member(shop, "C-BRONZE", tier="Silver")
        assert customer.is_member
        assert customer.tier == "Silver"
        again = customers_service.enroll_member(shop, "C-BRONZE")
        assert again.member_id == customer.member_id

    def test_debtors_largest_first(self, shop):
        transaction_service.commit_debt_payment(shop, "C-SILVER", Decimal("45000"))
        customers_service.create_customer(shop, {"id": "C-BIG", "name": "Joko", "debt_balance": 90000})
        assert [c.id for c in customers_service.list_debtors(shop)] == ["C-BIG", "C-SILVER"]

    def test_customer_with_debt_cannot_be_deleted(self, shop):
        with pytest.raises(ConflictError):
            customers_service.delete_customer(shop, "C-SILVER")
        assert customers_service.delete_customer(shop, "C-BRONZE") is True


class TestSuppliers:
    def test_linked_supplier_cannot_be_deleted(self, shop):
        with pytest.raises(ConflictError):
            supplier_service.delete_supplier(shop, "S-1")

    def test_update_is_last_writer_wins(self, shop):
        supplier_service.update_supplier(shop, "S-1", {"contact": "0812"})
        supplier = supplier_service.update_supplier(shop, "S-1", {"name": "Grosir Jaya Baru"})
        assert supplier.contact == "0812"
        assert supplier.name == "Grosir Jaya Baru"

    def test_stats(self, shop):
        transaction_service.commit_procurement(
            shop, "S-1", [ProcurementItem(product_id="P-MIE", quantity=40, buy_price=Decimal("2550"))],
        )
        stats = supplier_service.supplier_stats(shop, "S-1")
        assert stats["product_count"] == 1
        assert stats["procurement_count"] == 1
        assert Decimal(stats["total_spend"]) == Decimal("102000")


class TestRewards:
    def test_points_needed_must_be_positive(self, store):
        with pytest.raises(ValidationError):
            rewards_service.create_reward(store, {"name": "Gratis", "points_needed": 0})

    def test_list_sorted_by_points(self, shop):
        assert [r.id for r in rewards_service.list_rewards(shop)] == ["R-MUG", "R-BAG"]

    def test_restock(self, shop):
        reward = rewards_service.update_reward(shop, "R-MUG", {"stock": 10})
        assert reward.stock == 10

    def test_point_history_newest_first(self, shop):
        transaction_service.redeem_reward(shop, "C-SILVER", "R-MUG", redemption_id="REDEEM-1")
        rewards_service.update_reward(shop, "R-MUG", {"stock": 1})
        transaction_service.redeem_reward(shop, "C-SILVER", "R-MUG", redemption_id="REDEEM-3")

        history = rewards_service.point_history(shop, customer_id="C-SILVER")
        assert [e.id for e in history] == ["REDEEM-3", "REDEEM-1"]
        assert len(rewards_service.point_history(shop, limit=1)) == 1
        assert rewards_service.point_history(shop, customer_id="C-GOLD") == []
