"""Tests for permission merging, resolution over the seeded catalogue, and admin upserts."""

import unittest

from app.core.errors import BadRequestError
from app.models import PermissionOverride, Resource
from app.schemas.permissions import (
    PERMISSION_FLAGS,
    OverrideEntry,
    OverrideFlags,
    PermissionSet,
    RolePermissionEntry,
)
from app.services.permission_catalog import DEFAULT_RESOURCES, seed_permission_catalog
from app.services.permissions import PermissionResolver, merge_flags
from tests.helpers import make_account, make_session_factory


class TestMergeFlags(unittest.TestCase):
    """merge_flags: override value when not None, else role default, else False."""

    def test_null_inherits_and_value_replaces(self) -> None:
        default = PermissionSet(can_delete=True, can_edit=False)
        override = OverrideFlags(can_delete=None, can_edit=True)
        merged = merge_flags(default, override)
        self.assertTrue(merged.can_delete)
        self.assertTrue(merged.can_edit)

    def test_explicit_false_revokes_default(self) -> None:
        merged = merge_flags(PermissionSet(can_view=True), OverrideFlags(can_view=False))
        self.assertFalse(merged.can_view)

    def test_no_default_no_override_is_all_false(self) -> None:
        merged = merge_flags(None, None)
        for flag in PERMISSION_FLAGS:
            self.assertFalse(getattr(merged, flag))

    def test_override_without_default(self) -> None:
        merged = merge_flags(None, OverrideFlags(can_export=True))
        self.assertTrue(merged.can_export)
        self.assertFalse(merged.can_view)


class PermissionStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.resolver = PermissionResolver(self.db)

    def tearDown(self) -> None:
        self.db.close()


class TestResolve(PermissionStoreTestCase):
    def test_table_covers_every_active_resource_in_order(self) -> None:
        table = self.resolver.resolve(None, "unit")
        self.assertEqual(list(table), [rid for rid, *_ in DEFAULT_RESOURCES])

    def test_admin_has_everything(self) -> None:
        table = self.resolver.resolve(None, "admin")
        self.assertTrue(all(entry.can_delete for entry in table.values()))

    def test_unknown_role_is_all_false(self) -> None:
        table = self.resolver.resolve("nobody", "superuser")
        self.assertTrue(table)
        for entry in table.values():
            for flag in PERMISSION_FLAGS:
                self.assertFalse(getattr(entry, flag))

    def test_inactive_resource_is_not_resolved(self) -> None:
        self.db.query(Resource).filter(Resource.id == "campaigns").update({Resource.is_active: False})
        self.db.commit()
        self.assertNotIn("campaigns", self.resolver.resolve(None, "admin"))

    def test_missing_matrix_row_resolves_false(self) -> None:
        self.db.add(Resource(id="new_screen", name="New", path="/new", category="main", order_index=99))
        self.db.commit()
        entry = self.resolver.resolve(None, "admin")["new_screen"]
        self.assertFalse(entry.can_view)
        self.assertFalse(entry.is_override)

    def test_override_on_rentals_export_applies_to_that_account_only(self) -> None:
        granted = make_account(self.db, email="granted@x.com")
        other = make_account(self.db, email="other@x.com")
        self.assertFalse(self.resolver.resolve(granted.id, "unit")["rentals"].can_export)

        self.resolver.set_overrides(
            granted.id, [OverrideEntry(resource_id="rentals", can_export=True)]
        )

        mine = self.resolver.resolve(granted.id, "unit")["rentals"]
        self.assertTrue(mine.can_export)
        self.assertTrue(mine.can_view)
        self.assertTrue(mine.is_override)
        theirs = self.resolver.resolve(other.id, "unit")["rentals"]
        self.assertFalse(theirs.can_export)
        self.assertFalse(theirs.is_override)


class TestSetRoleDefaults(PermissionStoreTestCase):
    def test_change_is_visible_to_next_resolution(self) -> None:
        self.assertFalse(self.resolver.resolve(None, "unit")["leads"].can_view)
        written = self.resolver.set_role_defaults(
            "unit", [RolePermissionEntry(resource_id="leads", can_view=True, can_create=True)]
        )
        self.assertEqual(written, 1)
        entry = self.resolver.resolve(None, "unit")["leads"]
        self.assertTrue(entry.can_view)
        self.assertTrue(entry.can_create)
        self.assertFalse(entry.can_delete)

    def test_unknown_resource_rejected(self) -> None:
        with self.assertRaises(BadRequestError):
            self.resolver.set_role_defaults("unit", [RolePermissionEntry(resource_id="nope")])

    def test_reseeding_keeps_admin_edits(self) -> None:
        self.resolver.set_role_defaults("unit", [RolePermissionEntry(resource_id="leads", can_view=True)])
        self.assertEqual(seed_permission_catalog(self.db), (0, 0))
        self.assertTrue(self.resolver.resolve(None, "unit")["leads"].can_view)


class TestSetOverrides(PermissionStoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.account = make_account(self.db)

    def _override_count(self) -> int:
        return (
            self.db.query(PermissionOverride)
            .filter(PermissionOverride.account_id == self.account.id)
            .count()
        )

    def test_upsert_updates_existing_row(self) -> None:
        self.resolver.set_overrides(self.account.id, [OverrideEntry(resource_id="leads", can_view=True)])
        self.resolver.set_overrides(
            self.account.id, [OverrideEntry(resource_id="leads", can_view=True, can_edit=True)]
        )
        self.assertEqual(self._override_count(), 1)
        self.assertTrue(self.resolver.resolve(self.account.id, "unit")["leads"].can_edit)

    def test_all_null_entry_deletes_override(self) -> None:
        self.resolver.set_overrides(
            self.account.id, [OverrideEntry(resource_id="leads", can_view=True)], granted_by=None
        )
        upserted, deleted = self.resolver.set_overrides(
            self.account.id, [OverrideEntry(resource_id="leads")]
        )
        self.assertEqual((upserted, deleted), (0, 1))
        self.assertEqual(self._override_count(), 0)
        self.assertFalse(self.resolver.resolve(self.account.id, "unit")["leads"].can_view)

    def test_all_null_entry_without_row_is_noop(self) -> None:
        self.assertEqual(
            self.resolver.set_overrides(self.account.id, [OverrideEntry(resource_id="leads")]),
            (0, 0),
        )

    def test_unknown_resource_rejected_and_nothing_written(self) -> None:
        with self.assertRaises(BadRequestError):
            self.resolver.set_overrides(
                self.account.id,
                [
                    OverrideEntry(resource_id="leads", can_view=True),
                    OverrideEntry(resource_id="missing", can_view=True),
                ],
            )
        self.assertEqual(self._override_count(), 0)

    def test_records_grantor(self) -> None:
        admin = make_account(self.db, email="boss@x.com", role="admin")
        self.resolver.set_overrides(
            self.account.id, [OverrideEntry(resource_id="leads", can_view=True)], granted_by=admin.id
        )
        row = self.db.query(PermissionOverride).filter(PermissionOverride.account_id == self.account.id).one()
        self.assertEqual(row.granted_by, admin.id)
