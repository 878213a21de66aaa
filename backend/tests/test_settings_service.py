import unittest
from decimal import Decimal
from flask import Flask

from warung.errors import ValidationError
from warung.extensions import db
from warung.models import AppSettings, Customer, StoredRecord
from warung.services import settings_service
from warung.services.loyalty_ledger import compute_earned_points
from warung.storage import SqlStore


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from warung import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(StoredRecord).delete()
        db.session.commit()
        self.store = SqlStore("W-A")
        self.other = SqlStore("W-B")

    def test_unsaved_warung_gets_defaults(self):
        settings = settings_service.get_settings(self.store)
        self.assertEqual(settings, AppSettings())
        self.assertEqual(settings.tier_discounts["gold"], Decimal("5"))
        self.assertEqual(settings.tier_multipliers["silver"], Decimal("1.2"))
        self.assertTrue(settings.enable_points)

    def test_partial_save_keeps_other_fields(self):
        settings_service.save_settings(self.store, {"store_name": "Warung Bu Tini"})
        settings_service.save_settings(self.store, {"tier_discounts": {"gold": "7.5"}})

        settings = settings_service.get_settings(self.store)
        self.assertEqual(settings.store_name, "Warung Bu Tini")
        self.assertEqual(settings.tier_discounts["gold"], Decimal("7.5"))
        self.assertEqual(settings.tier_discounts["silver"], Decimal("2"))
        self.assertEqual(settings.point_value, Decimal("1000"))

    def test_save_bumps_version(self):
        first = settings_service.save_settings(self.store, {"store_name": "A"})
        second = settings_service.save_settings(self.store, {"store_name": "B"})
        self.assertEqual(first.version, 1)
        self.assertEqual(second.version, 2)

    def test_settings_are_per_warung(self):
        settings_service.save_settings(self.store, {"store_name": "Warung A"})
        self.assertEqual(settings_service.get_settings(self.other).store_name, AppSettings().store_name)

    def test_invalid_values_are_rejected(self):
        with self.assertRaises(ValidationError):
            settings_service.save_settings(self.store, {"point_value": 0})
        with self.assertRaises(ValidationError):
            settings_service.save_settings(self.store, {"tier_discounts": ["gold", 5]})
        with self.assertRaises(ValidationError):
            settings_service.save_settings(self.store, {"enable_points": "maybe"})
        self.assertIsNone(self.store.get(AppSettings.ENTITY_TYPE, "settings"))

    def test_saved_multiplier_drives_points(self):
        settings_service.save_settings(self.store, {"tier_multipliers": {"gold": 2}, "point_value": 500})
        settings = settings_service.get_settings(self.store)
        member = Customer(id="C-1", name="Budi", tier="Gold", is_member=True)
        # 95000 / 500 = 190 base points, doubled
        self.assertEqual(compute_earned_points(Decimal("95000"), member, settings), 380)


if __name__ == "__main__":
    unittest.main()
