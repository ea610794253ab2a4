"""
main.py
───────
CLI entry point for the Discord server backup tool.

    guild-backup                 interactive menu
    guild-backup snapshot        save the server structure
    guild-backup restore         wipe the server and rebuild it from the backup
    guild-backup rebuild-one ID  recreate a single channel in place
"""

from __future__ import annotations
import logging
import sys

import commands
from adapters.discord import DiscordAPI
from config import load_settings
from errors import ConfigMissingError
from store import SnapshotStore

ACTIONS = {
    "1": "snapshot",
    "2": "restore",
    "3": "rebuild-one",
}

ACTION_LABELS = {
    "1": "Snapshot      save roles, channels & overwrites",
    "2": "Restore       DELETE everything and rebuild from the backup",
    "3": "Rebuild one   recreate a single channel with the same settings",
}

# ── ANSI ──────────────────────────────────────────────────────────────────────
BOLD = "\033[1m"
CYAN = "\033[96m"
YELLOW = "\033[93m"
RED = "\033[91m"
RESET = "\033[0m"


def banner():
    print(f"""
{BOLD}╔══════════════════════════════════════════════════╗
║   Discord Server Backup & Restore  v1.0          ║
╚══════════════════════════════════════════════════╝{RESET}

{YELLOW}What is saved:{RESET}
  ✔ Server name & icon
  ✔ Roles (colour, hoist, mentionable, permissions)
  ✔ Categories, text & voice channels (in order)
  ✔ Role permission overwrites

{YELLOW}What is NOT saved:{RESET}
  ✘ Message history
  ✘ Per-member permission overwrites
  ✘ Bot / integration roles
""")


def pick_action() -> str:
    print(f"{BOLD}What do you want to do?{RESET}\n")
    for key, label in ACTION_LABELS.items():
        print(f"  [{key}]  {label}")
    print()

    while True:
        choice = input("  Enter number: ").strip()
        if choice in ACTIONS:
            return ACTIONS[choice]
        print("  Please enter a valid number.")


def prompt(label: str) -> str:
    while True:
        val = input(f"  {label}: ").strip()
        if val:
            return val
        print("  (required)")


def confirm(question: str) -> bool:
    return input(f"  {RED}{question}{RESET} [type 'yes']: ").strip().lower() == "yes"


def main(argv: list[str]) -> int:
    try:
        settings = load_settings()
    except ConfigMissingError as exc:
        print(f"  ✘  {exc}")
        print("  Set it in config.json, .env or the environment.")
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    api = DiscordAPI(settings.token, settings.guild_id)
    store = SnapshotStore(settings.backup_dir)

    if argv:
        action = argv[0]
    else:
        banner()
        action = pick_action()

    if action == "snapshot":
        status = commands.snapshot(api, store)
    elif action == "restore":
        if not argv and not confirm(f"This deletes every channel and role of {settings.guild_id}. Continue?"):
            print("  Restore cancelled.")
            return 0
        status = commands.restore(api, store, strict=settings.strict_restore, verbose=True)
    elif action == "rebuild-one":
        channel_id = argv[1] if len(argv) > 1 else prompt("Channel ID")
        status = commands.rebuild_one(api, store, channel_id)
    else:
        print(f"  Unknown action: {action}  (snapshot | restore | rebuild-one)")
        return 2

    print(f"\n  {CYAN}{status}{RESET}\n")
    return 1 if status.startswith("❌") else 0


def cli():
    try:
        sys.exit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\n\n  Cancelled.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
