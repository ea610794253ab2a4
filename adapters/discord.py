"""
adapters/discord.py
───────────────────
PlatformAPI over the Discord REST API (v10).

API base: https://discord.com/api/v10
Auth:     Authorization: Bot <token>

The bot needs Manage Roles, Manage Channels and Manage Server on the target
guild.  This adapter never sleeps or retries: a 429 is raised as
TooManyRequests and the Gateway decides what to do with it.
"""

from __future__ import annotations
import base64
import logging

import requests

from adapters.base import PlatformAPI
from adapters.permissions import discord as permissions
from errors import PlatformError, TooManyRequests

DISCORD_API = "https://discord.com/api/v10"

_OVERWRITE_ROLE = 0

log = logging.getLogger("guild_backup.discord")


class DiscordAPI(PlatformAPI):
    platform_name = "Discord"

    def __init__(self, token: str, guild_id: str, session: requests.Session | None = None):
        super().__init__(guild_id)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bot {token}",
            "Content-Type": "application/json",
            "User-Agent": "DiscordBot (guild-backup, 1.0)",
        })

    # ── internal HTTP helper ──────────────────────────────────────────────

    def _request(self, method: str, endpoint: str, payload: dict | None = None):
        url = f"{DISCORD_API}{endpoint}"
        kwargs = {"timeout": 10}
        if payload is not None:
            kwargs["json"] = payload
        r = self.session.request(method, url, **kwargs)
        if r.status_code == 429:
            try:
                retry_after = float(r.json().get("retry_after", 1.0))
            except ValueError:
                retry_after = 1.0
            raise TooManyRequests(method, endpoint, retry_after)
        if not r.ok:
            raise PlatformError(r.status_code, method, endpoint, r.text[:200])
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    # ── reads ─────────────────────────────────────────────────────────────

    def get_guild(self) -> dict:
        return self._request("get", f"/guilds/{self.guild_id}")

    def list_roles(self) -> list[dict]:
        return self._request("get", f"/guilds/{self.guild_id}/roles") or []

    def list_channels(self) -> list[dict]:
        return self._request("get", f"/guilds/{self.guild_id}/channels") or []

    def get_own_permissions(self) -> int:
        me = self._request("get", "/users/@me")
        member = self._request("get", f"/guilds/{self.guild_id}/members/{me['id']}")
        return permissions.server_permissions(self.list_roles(), member.get("roles", []), self.default_role_id)

    # ── writes ────────────────────────────────────────────────────────────

    def create_role(self, payload: dict) -> str:
        body = dict(payload)
        body["permissions"] = str(int(body.get("permissions", 0)))
        result = self._request("post", f"/guilds/{self.guild_id}/roles", body)
        return str(result["id"])

    def delete_role(self, role_id: str) -> None:
        self._request("delete", f"/guilds/{self.guild_id}/roles/{role_id}")

    def create_channel(self, payload: dict) -> str:
        result = self._request("post", f"/guilds/{self.guild_id}/channels", payload)
        return str(result["id"])

    def delete_channel(self, channel_id: str) -> None:
        self._request("delete", f"/channels/{channel_id}")

    def set_channel_overwrites(self, channel_id: str, overwrites: list[dict]) -> None:
        body = {
            "permission_overwrites": [
                {
                    "id": ow["id"],
                    "type": _OVERWRITE_ROLE,
                    "allow": str(int(ow["allow"])),
                    "deny": str(int(ow["deny"])),
                }
                for ow in overwrites
            ]
        }
        self._request("patch", f"/channels/{channel_id}", body)

    def rename_server(self, name: str) -> None:
        self._request("patch", f"/guilds/{self.guild_id}", {"name": name})

    def set_server_icon(self, icon_url: str) -> None:
        # CDN download; the bot token stays off this request
        r = self.session.get(icon_url, timeout=10, headers={"Authorization": None})
        if not r.ok:
            raise PlatformError(r.status_code, "get", icon_url, "could not download icon")
        content_type = r.headers.get("Content-Type", "image/png").split(";")[0]
        data_uri = f"data:{content_type};base64,{base64.b64encode(r.content).decode('ascii')}"
        log.debug("uploading %d byte icon (%s)", len(r.content), content_type)
        self._request("patch", f"/guilds/{self.guild_id}", {"icon": data_uri})

    def send_message(self, channel_id: str, text: str) -> None:
        self._request("post", f"/channels/{channel_id}/messages", {"content": text})
