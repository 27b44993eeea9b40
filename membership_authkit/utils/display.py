"""
Display Utilities - terminal output for the admin CLI
"""

import re

SENSITIVE_MARKERS = ["SECRET", "KEY", "TOKEN"]

_DSN_PASSWORD = re.compile(r"(://[^:/@]+:)([^@]+)(@)")


def print_banner():
    """
    Prints the Membership AuthKit banner.
    """
    banner = r"""
    ╔═══════════════════════════════════════════════════════════╗
    ║                                                           ║
    ║        🔒  MEMBERSHIP AUTHKIT  🔒                          ║
    ║                                                           ║
    ║        Users, Credentials and Roles over SQL              ║
    ║                                                           ║
    ╚═══════════════════════════════════════════════════════════╝
    """
    print(banner)


def mask_value(key: str, value) -> str:
    """Hide secrets and the password part of database DSNs."""
    if any(marker in key.upper() for marker in SENSITIVE_MARKERS):
        return "********" if value else "(not set)"
    if isinstance(value, str) and "://" in value:
        return _DSN_PASSWORD.sub(r"\1********\3", value)
    if hasattr(value, "name") and not isinstance(value, str):
        return value.name.lower()
    return str(value)


def print_config_summary(config_dict):
    """
    Prints a sanitized summary of the current provider configuration.
    """
    print("\n🔧 Current Configuration Summary:")
    print("─────────────────────────────────────────────")
    for key, value in config_dict.items():
        print(f"• {key}: {mask_value(key, value)}")
    print("─────────────────────────────────────────────\n")
