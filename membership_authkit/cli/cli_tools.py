"""
CLI tools for administering users and roles in SQL databases via Peewee.
Supports unified SQL backends (SQLite, PostgreSQL, MySQL).
"""

import argparse
import json
import getpass
from typing import List, Optional, Tuple

from membership_authkit.auth.providers.membership import MembershipProvider
from membership_authkit.auth.providers.roles import RoleProvider
from membership_authkit.auth.stores.database import open_database
from membership_authkit.errors import MembershipError
from membership_authkit.utils.config import ProviderConfig
from membership_authkit.utils.display import print_banner, print_config_summary


def _get_config(args) -> ProviderConfig:
    """
    Build the provider configuration: environment, then CLI overrides.
    Raw file paths passed to --db-path are treated as SQLite databases.
    """
    overrides = {}
    db_path = getattr(args, "db_path", None)
    if db_path:
        overrides["database_url"] = db_path if "://" in db_path else f"sqlite:///{db_path}"
    if getattr(args, "application", None):
        overrides["application_name"] = args.application
    return ProviderConfig(**overrides)


def _get_providers(args) -> Tuple[MembershipProvider, RoleProvider]:
    """Both providers share one connection and application scope."""
    config = _get_config(args)
    db = open_database(config.DATABASE_URL, config.COMMAND_TIMEOUT)
    return MembershipProvider(config, database=db), RoleProvider(config, database=db)


def _prompt_new_password(provided: Optional[str]) -> Optional[str]:
    if provided:
        return provided
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print("❌ Passwords do not match.")
        return None
    return password


def handle_management(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI management commands.
    Parses arguments and dispatches to the correct command function.
    """
    parser = argparse.ArgumentParser(
        prog="membership-authkit", description="Membership AuthKit - Administrative CLI"
    )
    subparsers = parser.add_subparsers(dest="command", help="Management commands")

    setup_cli_parser(subparsers)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except MembershipError as e:
        print(f"❌ {e}")
        return 1
    except ValueError as e:
        # Configuration errors from ProviderConfig._validate()
        print(f"❌ Invalid configuration: {e}")
        return 1


# ========================================
# Commands
# ========================================


def init_db_command(args):
    """Create the tables and the application scope."""
    membership, _ = _get_providers(args)
    membership.audit.custom_event("DATABASE_INITIALIZED", performed_by="cli")
    print(f"✅ Database tables initialized for application '{membership.application_name}'.")
    return 0


def add_user_command(args):
    membership, roles = _get_providers(args)

    password = _prompt_new_password(args.password)
    if password is None:
        return 1

    user = membership.create_user(
        args.username,
        password,
        email=args.email,
        password_question=args.question,
        password_answer=args.answer,
        is_approved=not args.unapproved,
        performed_by="cli",
    )
    print(f"✅ User '{user.user_name}' created successfully (key: {user.provider_user_key})")

    if args.role:
        roles.add_users_to_roles([user.user_name], args.role, performed_by="cli")
        print(f"✅ Added to role(s): {', '.join(args.role)}")
    return 0


def delete_user_command(args):
    membership, _ = _get_providers(args)

    if not args.yes:
        confirm = input(f"Are you sure you want to delete user '{args.username}'? (y/N): ")
        if confirm.lower() != "y":
            print("Operation cancelled.")
            return 0

    membership.delete_user(
        args.username, delete_all_related_data=not args.keep_related, performed_by="cli"
    )
    print(f"✅ User '{args.username}' deleted.")
    return 0


def list_users_command(args):
    membership, roles = _get_providers(args)

    if args.match:
        page = membership.find_users_by_name(args.match)
    else:
        page = membership.get_all_users()

    if args.json:
        users = [
            dict(u.to_dict(), roles=roles.get_roles_for_user(u.user_name)) for u in page
        ]
        print(json.dumps({"users": users, "total_records": page.total_records}, indent=2))
        return 0

    if not page.users:
        print("No users found in database.")
        return 0

    print(f"\n{'Username':<20} {'Email':<28} {'Status':<10} {'Roles':<25}")
    print("-" * 85)

    for u in page:
        if u.is_locked_out:
            status = "Locked"
        elif not u.is_approved:
            status = "Pending"
        else:
            status = "Active"
        user_roles = ", ".join(roles.get_roles_for_user(u.user_name)) or "-"
        print(f"{u.user_name:<20} {u.email or 'N/A':<28} {status:<10} {user_roles:<25}")

    print(f"\nTotal: {page.total_records} users.")
    return 0


def change_password_command(args):
    membership, _ = _get_providers(args)

    old_password = args.old_password or getpass.getpass("Current password: ")
    new_password = _prompt_new_password(args.password)
    if new_password is None:
        return 1

    if membership.change_password(args.username, old_password, new_password):
        print(f"✅ Password updated for '{args.username}'.")
        return 0

    print("❌ Current password is incorrect, or the account is locked or unapproved.")
    return 1


def unlock_user_command(args):
    membership, _ = _get_providers(args)

    membership.unlock_user(args.username, performed_by="cli")
    print(f"✅ User '{args.username}' unlocked.")
    return 0


def create_role_command(args):
    _, roles = _get_providers(args)

    roles.create_role(args.role_name, performed_by="cli")
    print(f"✅ Role '{args.role_name}' created.")
    return 0


def delete_role_command(args):
    _, roles = _get_providers(args)

    roles.delete_role(args.role_name, throw_on_populated_role=not args.force, performed_by="cli")
    print(f"✅ Role '{args.role_name}' deleted.")
    return 0


def list_roles_command(args):
    _, roles = _get_providers(args)

    all_roles = roles.get_all_roles()
    if not all_roles:
        print("No roles found in database.")
        return 0

    for role_name in all_roles:
        members = roles.get_users_in_role(role_name)
        print(f"🔹 {role_name} ({len(members)} users)")
        for username in members:
            print(f"   • {username}")
    return 0


def add_to_role_command(args):
    _, roles = _get_providers(args)

    roles.add_users_to_roles(args.usernames, args.role, performed_by="cli")
    print(f"✅ Added {', '.join(args.usernames)} to {', '.join(args.role)}.")
    return 0


def remove_from_role_command(args):
    _, roles = _get_providers(args)

    roles.remove_users_from_roles(args.usernames, args.role, performed_by="cli")
    print(f"✅ Removed {', '.join(args.usernames)} from {', '.join(args.role)}.")
    return 0


def show_config_command(args):
    config = _get_config(args)
    print_banner()
    print_config_summary(config.to_dict())
    return 0


def setup_cli_parser(subparsers):
    """Setup CLI argument parsers for all commands."""

    def add_common(p):
        p.add_argument("--db-path", help="Database path or DSN")
        p.add_argument("--application", help="Application scope (default: '/')")

    # init-db
    p_init = subparsers.add_parser("init-db", help="Initialize the SQL database")
    add_common(p_init)
    p_init.set_defaults(func=init_db_command)

    # add-user
    p_add = subparsers.add_parser("add-user", help="Add a new user")
    p_add.add_argument("username", help="Username")
    p_add.add_argument("--password", help="Password (will prompt if omitted)")
    p_add.add_argument("--email", help="User email")
    p_add.add_argument("--question", help="Password question")
    p_add.add_argument("--answer", help="Password answer")
    p_add.add_argument("--unapproved", action="store_true", help="Create the account unapproved")
    p_add.add_argument("--role", action="append", help="Role to add the user to (repeatable)")
    add_common(p_add)
    p_add.set_defaults(func=add_user_command)

    # delete-user
    p_del = subparsers.add_parser("delete-user", help="Delete a user")
    p_del.add_argument("username", help="Username")
    p_del.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    p_del.add_argument(
        "--keep-related", action="store_true", help="Keep the identity row and role memberships"
    )
    add_common(p_del)
    p_del.set_defaults(func=delete_user_command)

    # list-users
    p_list = subparsers.add_parser("list-users", help="List users")
    p_list.add_argument("--match", help="Only users whose name contains this text")
    p_list.add_argument("--json", action="store_true", help="Print users as JSON")
    add_common(p_list)
    p_list.set_defaults(func=list_users_command)

    # change-password
    p_pass = subparsers.add_parser("change-password", help="Change user password")
    p_pass.add_argument("username", help="Username")
    p_pass.add_argument("--old-password", help="Current password (will prompt if omitted)")
    p_pass.add_argument("--password", help="New password (will prompt if omitted)")
    add_common(p_pass)
    p_pass.set_defaults(func=change_password_command)

    # unlock-user
    p_unlock = subparsers.add_parser("unlock-user", help="Clear a user's lockout")
    p_unlock.add_argument("username", help="Username")
    add_common(p_unlock)
    p_unlock.set_defaults(func=unlock_user_command)

    # create-role
    p_crole = subparsers.add_parser("create-role", help="Create a role")
    p_crole.add_argument("role_name", help="Role name")
    add_common(p_crole)
    p_crole.set_defaults(func=create_role_command)

    # delete-role
    p_drole = subparsers.add_parser("delete-role", help="Delete a role")
    p_drole.add_argument("role_name", help="Role name")
    p_drole.add_argument("--force", action="store_true", help="Delete even if users are in it")
    add_common(p_drole)
    p_drole.set_defaults(func=delete_role_command)

    # list-roles
    p_lroles = subparsers.add_parser("list-roles", help="List roles and their users")
    add_common(p_lroles)
    p_lroles.set_defaults(func=list_roles_command)

    # add-to-role / remove-from-role
    for name, func, verb in (
        ("add-to-role", add_to_role_command, "Add users to roles"),
        ("remove-from-role", remove_from_role_command, "Remove users from roles"),
    ):
        p = subparsers.add_parser(name, help=verb)
        p.add_argument("usernames", nargs="+", help="Usernames")
        p.add_argument("--role", action="append", required=True, help="Role name (repeatable)")
        add_common(p)
        p.set_defaults(func=func)

    # show-config
    p_cfg = subparsers.add_parser("show-config", help="Print the effective configuration")
    add_common(p_cfg)
    p_cfg.set_defaults(func=show_config_command)
