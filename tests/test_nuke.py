import os
import sys
import tempfile
import unittest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.permissions.discord import MANAGE_CHANNELS
from errors import FetchError, MissingPermissionsError, PerItemCreateError, PlatformError
from gateway import Gateway, RetryPolicy
from nuke import NUKE_NOTICE, Nuker
from store import SnapshotStore
from fakes import FakePlatform, RecordingSleep


def guild_with_channels():
    return FakePlatform(
        guild_id="g1",
        roles=[
            {"id": "r1", "name": "Mod", "position": 1},
            {"id": "r2", "name": "Muted", "position": 2},
        ],
        channels=[
            {"id": "cat", "name": "Main", "type": 4, "position": 0},
            {"id": "c1", "name": "general", "type": 0, "position": 1, "parent_id": "cat",
             "topic": "welcome", "rate_limit_per_user": 5, "nsfw": False,
             "permission_overwrites": [
                 {"id": "r1", "type": 0, "allow": "1024", "deny": "0"},
                 {"id": "r2", "type": 0, "allow": "0", "deny": "2048"},
                 {"id": "u1", "type": 1, "allow": "8192", "deny": "0"},
             ]},
            {"id": "v1", "name": "Lounge", "type": 2, "position": 2, "parent_id": "cat",
             "bitrate": 96000, "user_limit": 8},
        ],
    )


class TestNuker(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = SnapshotStore(self._tmp.name)
        self.api = guild_with_channels()
        self.sleep = RecordingSleep()
        self.nuker = Nuker(self.api, self.store, Gateway(RetryPolicy(pace=0.05), sleep=self.sleep))

    def tearDown(self):
        self._tmp.cleanup()

    def test_text_channel_recreated_with_role_overwrites(self):
        new_id = self.nuker.nuke("c1")

        self.assertNotIn("c1", self.api.channels)
        new = self.api.channels[new_id]
        self.assertEqual(
            (new["name"], new["type"], new["position"], new["parent_id"], new["topic"], new["rate_limit_per_user"]),
            ("general", 0, 1, "cat", "welcome", 5),
        )
        self.assertEqual(new["permission_overwrites"], [
            {"id": "r1", "type": 0, "allow": "1024", "deny": "0"},
            {"id": "r2", "type": 0, "allow": "0", "deny": "2048"},
        ])
        self.assertEqual(self.api.messages, [(new_id, NUKE_NOTICE)])

    def test_safety_snapshot_saved_first(self):
        self.nuker.nuke("c1")
        saved = self.store.load("g1")
        self.assertIsNotNone(saved.channel("c1"))
        first_write = next(i for i, (m, _) in enumerate(self.api.calls) if m.startswith("create"))
        self.assertGreater(first_write, self.api.calls.index(("list_channels", None)))

    def test_voice_channel_keeps_bitrate_and_limit(self):
        new_id = self.nuker.nuke("v1")
        new = self.api.channels[new_id]
        self.assertEqual((new["bitrate"], new["user_limit"], new["parent_id"]), (96000, 8, "cat"))
        self.assertNotIn("v1", self.api.channels)
        self.assertEqual(self.api.messages, [])

    def test_overwrite_failure_keeps_replacement(self):
        self.api.failures[("set_channel_overwrites", "general")] = PlatformError(403, "patch", "/channels/1001")
        new_id = self.nuker.nuke("c1")
        self.assertEqual(new_id, "1001")
        self.assertEqual(self.api.channels[new_id]["permission_overwrites"], [])
        self.assertNotIn("c1", self.api.channels)

    def test_unknown_channel(self):
        with self.assertRaises(PerItemCreateError):
            self.nuker.nuke("missing")
        self.assertFalse(any(m == "create_channel" for m, _ in self.api.calls))

    def test_failed_create_leaves_original(self):
        self.api.failures[("create_channel", "general")] = PlatformError(403, "post", "/guilds/g1/channels")
        with self.assertRaises(PerItemCreateError):
            self.nuker.nuke("c1")
        self.assertIn("c1", self.api.channels)

    def test_missing_permissions_touch_nothing(self):
        self.api.own_permissions = MANAGE_CHANNELS
        with self.assertRaises(MissingPermissionsError) as ctx:
            self.nuker.nuke("c1")
        self.assertEqual(ctx.exception.missing, ["Manage Roles"])
        self.assertIn("c1", self.api.channels)
        self.assertEqual(self.api.calls, [("get_own_permissions", None)])
        self.assertFalse(self.store.exists("g1"))

    def test_unreadable_permissions_are_a_fetch_error(self):
        self.api.failures[("get_own_permissions", None)] = PlatformError(403, "get", "/users/@me")
        with self.assertRaises(FetchError):
            self.nuker.nuke("c1")
        self.assertIn("c1", self.api.channels)


if __name__ == "__main__":
    unittest.main()
