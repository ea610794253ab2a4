import unittest
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.permissions.discord import MANAGE_CHANNELS, MANAGE_GUILD, MANAGE_ROLES
from errors import FetchError, MissingPermissionsError, PerItemCreateError, PlatformError, TooManyRequests
from gateway import Gateway, RetryPolicy
from models import Channel, ChannelType, Overwrite, Role, ServerMetadata, Snapshot
from restorer import RESTORE_NOTICE, Restorer, RestoreStage, channel_payload
from fakes import FakePlatform, RecordingSleep

PACE = 0.055


def forbidden(path="/x"):
    return PlatformError(403, "post", path, "Missing Permissions")


class RestoreTestCase(unittest.TestCase):
    def setUp(self):
        self.sleep = RecordingSleep()
        self.gateway = Gateway(RetryPolicy(attempts=3, base_delay=1.5, pace=PACE), sleep=self.sleep)
        self.api = FakePlatform(guild_id="g1", name="Live")

    def restore(self, snapshot, strict=False):
        self.restorer = Restorer(self.api, self.gateway, strict=strict)
        return self.restorer.run(snapshot)


class TestRestoreScenario(RestoreTestCase):
    def test_single_role_and_channel(self):
        snap = Snapshot.from_dict({
            "roles": [{"id": "r1", "name": "Mod", "permissions": "8"}],
            "channels": [{"id": "c1", "name": "general", "kind": "text", "parentId": None,
                          "position": 0,
                          "overwrites": [{"principalId": "r1", "allow": "1024", "deny": "0"}]}],
        })
        report = self.restore(snap)

        mod = self.api.role_named("Mod")
        self.assertEqual(mod["permissions"], "8")
        self.assertEqual(len(self.api.roles), 2)  # @everyone + Mod

        self.assertEqual(len(self.api.channels), 1)
        general = self.api.channel_named("general")
        self.assertEqual(general["type"], 0)
        self.assertEqual(general["position"], 0)
        self.assertNotIn("parent_id", general)
        self.assertEqual(general["permission_overwrites"],
                         [{"id": mod["id"], "type": 0, "allow": "1024", "deny": "0"}])

        self.assertEqual(self.api.messages, [(general["id"], RESTORE_NOTICE)])
        self.assertEqual(report.notified_channel_id, general["id"])
        self.assertEqual(self.restorer.stage, RestoreStage.DONE)
        self.assertEqual(report.failures, 0)


class TestTeardown(RestoreTestCase):
    def setUp(self):
        super().setUp()
        self.api = FakePlatform(
            guild_id="g1",
            roles=[
                {"id": "old", "name": "Old", "position": 1},
                {"id": "bot", "name": "Bot", "position": 2, "managed": True},
            ],
            channels=[
                {"id": "x1", "name": "stale", "type": 0, "position": 0},
                {"id": "x2", "name": "stuck", "type": 0, "position": 1},
            ],
        )

    def test_clears_channels_and_deletable_roles(self):
        report = self.restore(Snapshot())
        self.assertEqual(self.api.channels, {})
        self.assertEqual(sorted(self.api.roles), ["bot", "g1"])
        self.assertEqual((report.channels_deleted, report.roles_deleted), (2, 1))
        self.assertNotIn(("delete_role", "g1"), self.api.calls)
        self.assertNotIn(("delete_role", "bot"), self.api.calls)

    def test_failed_deletion_does_not_stop_teardown(self):
        self.api.failures[("delete_channel", "x1")] = forbidden()
        report = self.restore(Snapshot())
        self.assertEqual(list(self.api.channels), ["x1"])
        self.assertNotIn("old", self.api.roles)
        self.assertEqual(report.deletions_failed, ["#stale"])

    def test_unreadable_server_aborts_before_teardown(self):
        self.api.failures[("list_roles", None)] = forbidden()
        with self.assertRaises(FetchError):
            self.restore(Snapshot())
        self.assertEqual(len(self.api.channels), 2)
        self.assertEqual(self.restorer.stage, RestoreStage.PENDING)

    def test_missing_permissions_abort_before_teardown(self):
        self.api.own_permissions = MANAGE_CHANNELS | MANAGE_ROLES
        with self.assertRaises(MissingPermissionsError) as ctx:
            self.restore(Snapshot())
        self.assertEqual(ctx.exception.missing, ["Manage Server"])
        self.assertEqual(len(self.api.channels), 2)
        self.assertIn("old", self.api.roles)
        self.assertFalse(any(m.startswith("delete") for m, _ in self.api.calls))
        self.assertEqual(self.restorer.stage, RestoreStage.PENDING)

    def test_sufficient_permissions_without_administrator(self):
        self.api.own_permissions = MANAGE_GUILD | MANAGE_CHANNELS | MANAGE_ROLES
        report = self.restore(Snapshot())
        self.assertEqual(report.channels_deleted, 2)
        self.assertEqual(self.restorer.stage, RestoreStage.DONE)


def layered_snapshot():
    return Snapshot(
        meta=ServerMetadata(id="old-guild", name="Live"),
        roles=(
            Role(id="old-guild", name="@everyone", permissions="1"),
            Role(id="r1", name="Mod", position=1, permissions="8"),
            Role(id="r2", name="Member", position=0, permissions="1024"),
        ),
        channels=(
            Channel(id="t1", name="chat", type=ChannelType.TEXT, position=0, parent_id="k2",
                    topic="talk", rate_limit_per_user=3,
                    overwrites=(Overwrite("r1", "1024", "0"), Overwrite("old-guild", "0", "1024"))),
            Channel(id="k2", name="Second", type=ChannelType.CATEGORY, position=1),
            Channel(id="v1", name="Voice", type=ChannelType.VOICE, position=1, parent_id="k1",
                    bitrate=64000, user_limit=4),
            Channel(id="k1", name="First", type=ChannelType.CATEGORY, position=0,
                    overwrites=(Overwrite("r2", "1024", "0"),)),
        ),
    )


class TestCreation(RestoreTestCase):
    def test_categories_created_before_other_channels(self):
        self.restore(layered_snapshot())
        created = [key for method, key in self.api.calls if method == "create_channel"]
        self.assertEqual(created, ["First", "Second", "chat", "Voice"])

    def test_children_parented_through_category_map(self):
        self.restore(layered_snapshot())
        first = self.api.channel_named("First")
        second = self.api.channel_named("Second")
        self.assertEqual(self.api.channel_named("chat")["parent_id"], second["id"])
        voice = self.api.channel_named("Voice")
        self.assertEqual(voice["parent_id"], first["id"])
        self.assertEqual((voice["bitrate"], voice["user_limit"]), (64000, 4))
        self.assertNotIn("topic", voice)

    def test_default_role_is_not_recreated_but_mapped(self):
        self.restore(layered_snapshot())
        self.assertNotIn(("create_role", "@everyone"), self.api.calls)
        chat = self.api.channel_named("chat")
        principals = {ow["id"]: ow["deny"] for ow in chat["permission_overwrites"]}
        self.assertEqual(principals["g1"], "1024")
        self.assertIn(self.api.role_named("Mod")["id"], principals)

    def test_one_call_per_entity_each_paced(self):
        report = self.restore(layered_snapshot())
        creates = [c for c in self.api.calls if c[0] in ("create_role", "create_channel")]
        self.assertEqual(len(creates), 2 + 4)
        overwrite_calls = [c for c in self.api.calls if c[0] == "set_channel_overwrites"]
        self.assertEqual(len(overwrite_calls), 2)  # First and chat only
        # roles + channels + overwrites + notice, nothing to delete or rename
        self.assertEqual(self.sleep.delays, [PACE] * (2 + 4 + 2 + 1))
        self.assertEqual(report.failures, 0)

    def test_failed_category_leaves_child_at_top_level(self):
        self.api.failures[("create_channel", "First")] = forbidden()
        report = self.restore(layered_snapshot())
        voice = self.api.channel_named("Voice")
        self.assertNotIn("parent_id", voice)
        self.assertEqual(report.cats_failed, ["First"])
        self.assertEqual(report.channels_ok, ["chat", "Voice"])

    def test_unmapped_principal_falls_back_to_default_role(self):
        self.api.failures[("create_role", "Mod")] = forbidden()
        report = self.restore(layered_snapshot())
        chat = self.api.channel_named("chat")
        self.assertEqual([ow["id"] for ow in chat["permission_overwrites"]], ["g1"])
        self.assertEqual(report.roles_failed, ["Mod"])
        self.assertEqual(report.roles_ok, ["Member"])

    def test_principal_unknown_to_snapshot_falls_back(self):
        snap = Snapshot(channels=(
            Channel(id="c", name="c", type=ChannelType.TEXT,
                    overwrites=(Overwrite("ghost", "1024", "0"),)),
        ))
        self.restore(snap)
        self.assertEqual(self.api.channel_named("c")["permission_overwrites"][0]["id"], "g1")

    def test_failed_channel_does_not_block_the_rest(self):
        self.api.failures[("create_channel", "chat")] = forbidden()
        report = self.restore(layered_snapshot())
        self.assertEqual(report.channels_failed, ["chat"])
        self.assertEqual(report.channels_ok, ["Voice"])
        self.assertIsNone(report.notified_channel_id)
        self.assertEqual(self.api.messages, [])

    def test_rate_limited_role_is_isolated(self):
        self.api.failures[("create_role", "Member")] = TooManyRequests("post", "/roles", 1)
        report = self.restore(layered_snapshot())
        self.assertEqual(self.api.calls.count(("create_role", "Member")), 3)
        self.assertEqual(report.roles_failed, ["Member"])
        self.assertEqual(self.sleep.delays[:4], [1.5, 3.0, 4.5, PACE])
        self.assertIn("Mod", report.roles_ok)

    def test_overwrite_failure_keeps_channel(self):
        self.api.failures[("set_channel_overwrites", "First")] = forbidden()
        report = self.restore(layered_snapshot())
        first = self.api.channel_named("First")
        self.assertIn(("set_channel_overwrites", "First"), self.api.calls)
        self.assertEqual(first["permission_overwrites"], [])
        self.assertIn("First", report.cats_ok)
        self.assertEqual(len(report.cats_ok) + len(report.channels_ok), 4)
        self.assertEqual(self.api.channel_named("Voice")["parent_id"], first["id"])

    def private_channel(self, *overwrites):
        return Snapshot(
            meta=ServerMetadata(id="old-guild", name="Live"),
            roles=(Role(id="old-guild", name="@everyone"), Role(id="r1", name="Staff", position=1)),
            channels=(Channel(id="c", name="staff-only", type=ChannelType.TEXT, overwrites=overwrites),),
        )

    def test_failed_role_never_replaces_default_role_overwrite(self):
        everyone_deny = Overwrite("old-guild", "0", "1024")
        staff_allow = Overwrite("r1", "1024", "0")
        for order in ((everyone_deny, staff_allow), (staff_allow, everyone_deny)):
            with self.subTest(order=[ow.principal_id for ow in order]):
                self.api = FakePlatform(guild_id="g1", name="Live")
                self.api.failures[("create_role", "Staff")] = forbidden()
                self.restore(self.private_channel(*order))
                self.assertEqual(self.api.channel_named("staff-only")["permission_overwrites"],
                                 [{"id": "g1", "type": 0, "allow": "0", "deny": "1024"}])

    def test_first_fallback_kept_when_no_default_overwrite(self):
        snap = Snapshot(channels=(
            Channel(id="c", name="c", type=ChannelType.TEXT,
                    overwrites=(Overwrite("ghost", "1024", "0"), Overwrite("phantom", "0", "2048"))),
        ))
        self.restore(snap)
        self.assertEqual(self.api.channel_named("c")["permission_overwrites"],
                         [{"id": "g1", "type": 0, "allow": "1024", "deny": "0"}])

    def test_strict_mode_stops_at_first_failure(self):
        self.api.failures[("create_role", "Member")] = forbidden()
        with self.assertRaises(PerItemCreateError):
            self.restore(layered_snapshot(), strict=True)
        self.assertEqual(self.restorer.stage, RestoreStage.CREATE_ROLES)
        self.assertNotIn(("create_role", "Mod"), self.api.calls)


class TestMetadata(RestoreTestCase):
    def snapshot(self, name, icon=None):
        return Snapshot(meta=ServerMetadata(id="g1", name=name, icon_url=icon))

    def test_rename_only_when_different(self):
        self.restore(self.snapshot("Live"))
        self.assertNotIn("rename_server", [m for m, _ in self.api.calls])
        self.restore(self.snapshot("Restored"))
        self.assertEqual(self.api.name, "Restored")

    def test_icon_failure_is_a_warning(self):
        self.api.failures[("set_server_icon", "https://cdn/icon.png")] = forbidden()
        report = self.restore(self.snapshot("Live", "https://cdn/icon.png"))
        self.assertEqual(report.warnings, ["server icon not restored"])
        self.assertEqual(self.restorer.stage, RestoreStage.DONE)

    def test_summary(self):
        self.api.failures[("create_role", "Mod")] = forbidden()
        report = self.restore(layered_snapshot())
        self.assertTrue(report.summary().startswith("Restore finished: 1/2 roles, 2/2 categories, 2/2 channels"))
        self.assertIn("1 failures", report.summary())


class TestChannelPayload(unittest.TestCase):
    def test_text_fields(self):
        ch = Channel(id="c", name="news", type=ChannelType.ANNOUNCE, position=4,
                     topic="t", nsfw=True, rate_limit_per_user=30, bitrate=1)
        payload = channel_payload(ch, "cat")
        self.assertEqual(payload, {"name": "news", "type": 5, "position": 4, "parent_id": "cat",
                                   "nsfw": True, "rate_limit_per_user": 30, "topic": "t"})

    def test_category_ignores_parent(self):
        ch = Channel(id="k", name="K", type=ChannelType.CATEGORY, position=2)
        self.assertEqual(channel_payload(ch, "x"), {"name": "K", "type": 4, "position": 2})


if __name__ == "__main__":
    unittest.main()
