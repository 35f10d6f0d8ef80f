#!/usr/bin/env python3
"""
privAD - Privileged Access Audit for Active Directory
=====================================================

Command-line interface for the privileged-group membership audit.

Usage:
    # Live audit over LDAP
    privad -u auditor -p Password123 -d corp.local -s 192.168.1.100

    # With NTLM hash
    privad -u auditor --ntlm-hash aad3b435b51404ee:31d6cfe0d16ae931 -d corp.local -s 192.168.1.100

    # Offline audit of a snapshot
    privad --snapshot corp_snapshot.json -o ./results

Options:
    --username, -u      Domain username
    --password, -p      Domain password
    --ntlm-hash         NTLM hash for authentication
    --domain, -d        Domain name (e.g., corp.local)
    --server, -s        Domain controller IP address
    --ssl               Use LDAPS
    --snapshot          Directory snapshot JSON file instead of LDAP
    --group, -g         Additional group to audit (repeatable)
    --format, -f        Report format: csv, json (repeatable)
    --output, -o        Output directory (default: ./output)
    --verbose, -v       Verbose output

Environment Variables:
    PRIVAD_PASSWORD     Bind password when -p is not given
"""

import argparse
import os
import sys

from . import __version__
from .audit import run_audit
from .errors import AuditAbortedError
from .reporting.report_builder import SUPPORTED_FORMATS, generate_text_report


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="privad",
        description="privAD - Privileged Access Audit for Active Directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Live audit
  %(prog)s -u auditor -p Password123 -d corp.local -s 192.168.1.100

  # LDAPS, JSON reports only
  %(prog)s -u auditor -d corp.local -s dc01.corp.local --ssl -f json

  # Offline audit, extra group
  %(prog)s --snapshot corp_snapshot.json -g "Tier0 Operators" -o ./results
        """
    )

    # LDAP options
    ldap_group = parser.add_argument_group("LDAP Connection")
    ldap_group.add_argument(
        "-u", "--username",
        help="Domain username for LDAP authentication"
    )
    ldap_group.add_argument(
        "-p", "--password",
        help="Domain password (default: $PRIVAD_PASSWORD)"
    )
    ldap_group.add_argument(
        "--ntlm-hash",
        dest="ntlm_hash",
        help="NTLM hash for authentication (instead of password)"
    )
    ldap_group.add_argument(
        "-d", "--domain",
        help="Domain name (e.g., corp.local)"
    )
    ldap_group.add_argument(
        "-s", "--server",
        help="Domain controller IP address or hostname"
    )
    ldap_group.add_argument(
        "--ssl",
        action="store_true",
        help="Use LDAPS (port 636)"
    )

    # Input options
    input_group = parser.add_argument_group("Offline Input")
    input_group.add_argument(
        "--snapshot",
        help="Directory snapshot JSON file to audit instead of a live domain"
    )

    # Audit options
    audit_group = parser.add_argument_group("Audit Options")
    audit_group.add_argument(
        "-g", "--group",
        action="append",
        default=[],
        dest="groups",
        help="Additional group to audit (repeatable)"
    )

    # Output options
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "-o", "--output",
        default="output",
        help="Output directory for reports (default: ./output)"
    )
    output_group.add_argument(
        "-f", "--format",
        action="append",
        choices=SUPPORTED_FORMATS,
        dest="formats",
        help="Report format (repeatable, default: csv and json)"
    )

    # General options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"privAD {__version__}"
    )

    args = parser.parse_args(argv)

    has_ldap = args.domain and args.server
    if not has_ldap and not args.snapshot:
        parser.error("Must provide -d (domain) and -s (server), or --snapshot")

    # Build configuration
    config = {
        "ldap": {
            "use_ssl": args.ssl,
        },
        "audit": {
            "extra_groups": args.groups,
        },
        "output": {
            "output_dir": args.output,
            "formats": args.formats or list(SUPPORTED_FORMATS),
        },
        "verbose": args.verbose,
    }

    print_banner()

    try:
        result = run_audit(
            username=args.username,
            password=args.password or os.environ.get("PRIVAD_PASSWORD"),
            ntlm_hash=args.ntlm_hash,
            domain=args.domain,
            server_ip=args.server,
            snapshot=args.snapshot,
            config=config,
            progress_callback=None if args.verbose else _quiet_progress
        )
        print(generate_text_report(result))
        return 0

    except AuditAbortedError as e:
        print(f"\n[!] Audit aborted: {e}")
        if e.result is not None:
            print(generate_text_report(e.result))
        return 1

    except Exception as e:
        print(f"\n[!] Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def _quiet_progress(message: str) -> None:
    """Only surface warnings and errors when not verbose."""
    if message.startswith("[!]"):
        print(message)


def print_banner():
    """Print the privAD banner."""
    banner = r"""
             _            _    ____
  _ __  _ __(_)_   __    / \  |  _ \
 | '_ \| '__| \ \ / /   / _ \ | | | |
 | |_) | |  | |\ V /   / ___ \| |_| |
 | .__/|_|  |_| \_/   /_/   \_\____/
 |_|
  Privileged Access Audit for Active Directory
    """
    print(banner)


if __name__ == "__main__":
    sys.exit(main())
