import unittest
from flask import Flask

from efectivio.extensions import db
from efectivio.models import AuditLog, Client, SystemConfig, User, WhiteLabel
from efectivio.services import settings_service
from efectivio.services.settings_service import SettingNotFoundError, WhiteLabelNotFoundError
from efectivio.validation import ConflictError, ValidationError


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
        from efectivio import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(AuditLog).delete()
        db.session.query(WhiteLabel).delete()
        db.session.query(SystemConfig).delete()
        db.session.query(Client).delete()
        db.session.query(User).delete()
        db.session.commit()

        self.admin = User(
            username="admin",
            email="admin@test.local",
            password_hash="x",
            role="admin",
            is_active=True,
        )
        db.session.add(self.admin)
        db.session.commit()

    def _audit(self, entity_type, action):
        return (
            db.session.query(AuditLog)
            .filter_by(entity_type=entity_type, action=action)
            .order_by(AuditLog.id.desc())
            .all()
        )

    def test_create_config_writes_audit(self):
        record = settings_service.create_config(
            {"key": "company.name", "value": "Efectivio", "category": "company"},
            user=self.admin,
        )
        self.assertEqual(record.updated_by_user_id, self.admin.id)

        rows = self._audit("system_config", "create")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].entity_id, "company.name")
        self.assertEqual(rows[0].user_id, self.admin.id)
        self.assertIsNone(rows[0].changes["before"])
        self.assertEqual(rows[0].changes["after"]["value"], "Efectivio")

    def test_duplicate_key_conflicts(self):
        settings_service.create_config({"key": "company.currency", "value": "MXN"}, user=self.admin)
        db.session.commit()
        with self.assertRaises(ConflictError):
            settings_service.create_config({"key": "company.currency", "value": "USD"}, user=self.admin)
        db.session.rollback()
        self.assertEqual(db.session.query(SystemConfig).count(), 1)

    def test_update_records_only_changed_fields(self):
        settings_service.create_config(
            {"key": "invoice.default_due_days", "value": "30", "category": "billing"},
            user=self.admin,
        )
        settings_service.update_config("invoice.default_due_days", {"value": "45", "category": "billing"}, user=self.admin)

        row = self._audit("system_config", "update")[0]
        self.assertEqual(row.changes, {"before": {"value": "30"}, "after": {"value": "45"}})
        self.assertEqual(settings_service.get_config("invoice.default_due_days").value, "45")

    def test_update_without_changes(self):
        settings_service.create_config({"key": "portal.invitation_ttl_days", "value": "7"}, user=self.admin)
        settings_service.update_config("portal.invitation_ttl_days", {"value": "7"}, user=self.admin)

        row = self._audit("system_config", "update")[0]
        self.assertIsNone(row.changes)
        self.assertEqual(row.details, "No changes")

    def test_key_is_immutable(self):
        settings_service.create_config({"key": "company.name", "value": "A"}, user=self.admin)
        with self.assertRaises(ValidationError):
            settings_service.update_config("company.name", {"key": "company.title"}, user=self.admin)
        db.session.rollback()

    def test_missing_key_raises(self):
        with self.assertRaises(SettingNotFoundError):
            settings_service.get_config("does.not.exist")

    def test_required_setting_cannot_be_deleted(self):
        settings_service.create_config({"key": "company.name", "value": "A", "is_required": True}, user=self.admin)
        with self.assertRaises(ConflictError):
            settings_service.delete_config("company.name", user=self.admin)
        db.session.rollback()
        self.assertIsNotNone(settings_service.get_config("company.name"))

    def test_delete_optional_setting(self):
        settings_service.create_config({"key": "invoice.default_tax_rate", "value": "16"}, user=self.admin)
        settings_service.delete_config("invoice.default_tax_rate", user=self.admin)
        self.assertEqual(db.session.query(SystemConfig).count(), 0)
        row = self._audit("system_config", "delete")[0]
        self.assertEqual(row.changes["before"]["value"], "16")
        self.assertIsNone(row.changes["after"])

    def test_list_hides_inactive_by_default(self):
        settings_service.create_config({"key": "a.one", "value": "1", "category": "a"}, user=self.admin)
        settings_service.create_config({"key": "a.two", "value": "2", "category": "a", "is_active": False}, user=self.admin)
        settings_service.create_config({"key": "b.one", "value": "1", "category": "b"}, user=self.admin)

        self.assertEqual([c.key for c in settings_service.list_configs(category="a")], ["a.one"])
        self.assertEqual(
            [c.key for c in settings_service.list_configs(category="a", include_inactive=True)],
            ["a.one", "a.two"],
        )
        self.assertEqual(len(settings_service.list_configs()), 2)

    def test_seed_defaults_is_idempotent(self):
        created = settings_service.seed_default_configs()
        self.assertEqual(created, len(settings_service.DEFAULT_CONFIG))
        self.assertEqual(settings_service.seed_default_configs(), 0)
        self.assertTrue(settings_service.get_config("company.currency").is_required)

    def test_white_label_single_active(self):
        first = settings_service.create_white_label(
            {"name": "Principal", "company_name": "Efectivio", "primary_color": "#112233"},
            activate=True, user=self.admin,
        )
        second = settings_service.create_white_label(
            {"name": "Alterno", "company_name": "Efectivio"}, activate=True, user=self.admin,
        )
        db.session.refresh(first)
        self.assertFalse(first.is_active)
        self.assertTrue(second.is_active)

        settings_service.activate_white_label(first.id, user=self.admin)
        db.session.refresh(second)
        self.assertFalse(second.is_active)
        self.assertEqual(settings_service.get_active_white_label().id, first.id)
        self.assertEqual(db.session.query(WhiteLabel).filter_by(is_active=True).count(), 1)

    def test_white_label_rejects_bad_color(self):
        with self.assertRaises(ValidationError):
            settings_service.create_white_label(
                {"name": "X", "company_name": "Y", "primary_color": "blue"}, user=self.admin,
            )
        db.session.rollback()
        self.assertEqual(db.session.query(WhiteLabel).count(), 0)

    def test_active_white_label_cannot_be_deleted(self):
        record = settings_service.create_white_label(
            {"name": "Principal", "company_name": "Efectivio"}, activate=True, user=self.admin,
        )
        with self.assertRaises(ConflictError):
            settings_service.delete_white_label(record.id, user=self.admin)
        db.session.rollback()

        self.assertEqual(settings_service.deactivate_all_white_labels(user=self.admin), 1)
        settings_service.delete_white_label(record.id, user=self.admin)
        with self.assertRaises(WhiteLabelNotFoundError):
            settings_service.get_white_label(record.id)

    def test_client_white_label(self):
        client = Client(client_type="company", name="Acme")
        db.session.add(client)
        db.session.commit()
        settings_service.create_white_label(
            {"name": "Acme", "company_name": "Acme", "client_id": client.id}, user=self.admin,
        )
        self.assertEqual(settings_service.get_client_white_label(client.id).name, "Acme")
        self.assertIsNone(settings_service.get_client_white_label(client.id + 1))

    def test_white_label_update_diff(self):
        record = settings_service.create_white_label(
            {"name": "Principal", "company_name": "Efectivio", "primary_color": "#112233"}, user=self.admin,
        )
        settings_service.update_white_label(record.id, {"primary_color": "#445566"}, user=self.admin)
        row = self._audit("white_label", "update")[0]
        self.assertEqual(row.changes, {"before": {"primary_color": "#112233"}, "after": {"primary_color": "#445566"}})


if __name__ == "__main__":
    unittest.main()
