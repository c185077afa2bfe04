#!/usr/bin/env python3
"""1p - A `pass`-style frontend for the 1Password `op` tool.

`1p ls` prints every item as a tree grouped by vault:

    Jordan Doyle (my)
    ├── Guest House Network
    │   ├── switch0-3-6
    │   └── Wireless Router
    └── Personal
        ├── SoundCloud
        └── Ladbrokes
"""

import argparse
import os
import subprocess
import sys
from importlib.metadata import PackageNotFoundError, version

from rich.console import Console
from rich.table import Table

from .api import listing_entries
from .audit import default_logger
from .op_backend import ItemNotFoundError, OpBackend, OpError
from .session import DEFAULT_TTL, SigninError, clear_session, resolve_session, signin
from .tree import TreeError, render_tree


def get_version():
    try:
        return version("onep-cli")
    except PackageNotFoundError:
        from . import __version__
        return __version__


def get_backend(args):
    """Build the backend for this invocation from explicit flags."""
    session = resolve_session(
        token=getattr(args, "session", None),
        account=getattr(args, "account", None),
    )
    return OpBackend(session)


def audit(result, action, target, reason=None):
    """Record a secret reveal in the access log."""
    try:
        default_logger().log_access(result, action, target, reason)
    except OSError as e:
        print(f"Warning: could not write audit log: {e}", file=sys.stderr)


def copy_to_clipboard(text):
    """Copy text to clipboard using appropriate tool."""
    if os.path.exists("/proc/version"):
        with open("/proc/version") as f:
            kernel = f.read().lower()
        if "microsoft" in kernel or "wsl" in kernel:
            cmd = ["clip.exe"]
        elif os.environ.get("WAYLAND_DISPLAY"):
            cmd = ["wl-copy"]
        else:
            cmd = ["xclip", "-selection", "clipboard"]
    elif sys.platform == "darwin":
        cmd = ["pbcopy"]
    else:
        print(text)
        print("(No clipboard tool available - printing to stdout)", file=sys.stderr)
        return

    try:
        proc = subprocess.run(cmd, input=text.encode("utf-8"), capture_output=True)
        if proc.returncode == 0:
            print("(copied to clipboard)")
        else:
            print(text)
            print("(Clipboard failed - printing to stdout)", file=sys.stderr)
    except FileNotFoundError:
        print(text)
        print("(Clipboard tool not found - printing to stdout)", file=sys.stderr)


def print_item(item, console=None):
    """Print an item as one table for its fields and one per section."""
    console = console or Console()

    table = Table(title=item.title, show_header=False)
    table.add_column("Field")
    table.add_column("Value", justify="right")
    for item_field in item.fields:
        table.add_row(item_field.name, item_field.value)
    console.print(table)

    for section in item.sections:
        if not section.fields:
            continue

        table = Table(title=section.name or None, show_header=False)
        table.add_column("Field")
        table.add_column("Value", justify="right")
        for item_field in section.fields:
            table.add_row(item_field.name, item_field.value)
        console.print(table)


def cmd_list(args):
    """List all items as a tree."""
    backend = get_backend(args)

    account = backend.account()
    vaults = backend.vaults()
    items = backend.search()

    label, entries = listing_entries(
        account,
        vaults,
        items,
        show_uuids=args.show_uuids,
        show_account_names=args.show_account_names,
    )

    for line in render_tree(label, entries):
        print(line)


def cmd_totp(args):
    """Print the current one-time password for an item."""
    backend = get_backend(args)

    try:
        code = backend.totp(args.uuid)
    except OpError as e:
        audit("ERROR", "TOTP", args.uuid, str(e))
        raise

    audit("ALLOWED", "TOTP", args.uuid)
    print(code.strip())


def cmd_search(args):
    """Search items by title, account, url, tag or uuid."""
    backend = get_backend(args)

    for result in backend.search(args.terms):
        print(f"[{result.title}]")
        print(result.account_info)
        print(result.uuid)
        print()


def cmd_show(args):
    """Show an item's fields, optionally copying one to the clipboard."""
    backend = get_backend(args)

    try:
        item = backend.get(args.uuid)
        if item is None:
            raise ItemNotFoundError("Couldn't find the requested item.")
    except OpError as e:
        audit("ERROR", "SHOW", args.uuid, str(e))
        raise

    audit("ALLOWED", "SHOW", args.uuid)
    print_item(item)

    if args.clip:
        item_field = item.find_field(args.clip)
        if item_field is None:
            raise ItemNotFoundError(f"Item has no field named '{args.clip}'")
        audit("ALLOWED", "CLIP", args.uuid, item_field.name)
        copy_to_clipboard(item_field.value)


def cmd_generate(args):
    """Create a login with a generated password and show it."""
    backend = get_backend(args)

    try:
        item = backend.generate(args.name, username=args.username, url=args.url, tags=args.tags)
    except OpError as e:
        audit("ERROR", "GENERATE", args.name, str(e))
        raise

    audit("ALLOWED", "GENERATE", args.name)
    print_item(item)


def cmd_signin(args):
    """Sign in through op and cache the session token."""
    ttl = args.ttl if args.ttl else DEFAULT_TTL
    signin(args.account, ttl)
    print(f"Session active ({ttl} seconds)")


def cmd_signout(args):
    """Forget the cached session token."""
    if clear_session():
        print("Session destroyed.")
    else:
        print("No active session.")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="1p",
        description="1password cli for humans"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}"
    )
    parser.add_argument("--account", help="op account shorthand")
    parser.add_argument("--session", help="op session token (default: $OP_SESSION_<account> or cached)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # list
    list_parser = subparsers.add_parser("list", aliases=["ls"], help="List all items")
    list_parser.add_argument("-i", "--show-uuids", action="store_true", help="Show item uuids")
    list_parser.add_argument("-n", "--show-account-names", action="store_true", help="Show account names")

    # totp
    totp_parser = subparsers.add_parser("totp", help="Grab a two-factor authentication code for the given item")
    totp_parser.add_argument("uuid", help="Item uuid")

    # search
    search_parser = subparsers.add_parser("search", help="Search for an item")
    search_parser.add_argument("terms", help="Search terms")

    # show
    show_parser = subparsers.add_parser(
        "show", aliases=["get"], help="Show existing password and optionally put it on the clipboard"
    )
    show_parser.add_argument("uuid", help="Item uuid")
    show_parser.add_argument("--clip", metavar="FIELD", help="Copy the named field to the clipboard")

    # generate
    generate_parser = subparsers.add_parser(
        "generate", aliases=["gen"], help="Generates a new password and stores it in your password store"
    )
    generate_parser.add_argument("name", help="Name of the login to create")
    generate_parser.add_argument("-n", "--username", help="Username to associate with the login")
    generate_parser.add_argument("-u", "--url", help="URL to associate with the login")
    generate_parser.add_argument("-t", "--tags", help="Comma-separated list of tags to associate with the login")

    # signin
    signin_parser = subparsers.add_parser("signin", help="Sign in and cache the session token")
    signin_parser.add_argument("--ttl", type=int, help=f"Session TTL in seconds (default: {DEFAULT_TTL})")

    # signout
    subparsers.add_parser("signout", help="Forget the cached session token")

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "list": cmd_list,
        "ls": cmd_list,
        "totp": cmd_totp,
        "search": cmd_search,
        "show": cmd_show,
        "get": cmd_show,
        "generate": cmd_generate,
        "gen": cmd_generate,
        "signin": cmd_signin,
        "signout": cmd_signout,
    }

    try:
        commands[args.command](args)
    except (OpError, TreeError, SigninError) as e:
        print(e, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
