"""Utility for verifying that the local credential broker can start.

The tool performs the same steps as application startup:

1. It instantiates ``AppSettings`` (optionally from a given ``.env`` file),
   surfacing malformed configuration entries before the service fails.
2. It opens the credential database, unlocks the master key and runs the
   encryption self-test.

Example usages::

    # Validate settings and the key store.
    python -m scripts.check_env check --env-file ~/.scp/.env

    # List stored authorizations (never prints tokens).
    python -m scripts.check_env status

    # Drop endpoint cache entries past their ttl.
    python -m scripts.check_env purge-cache
"""

from __future__ import annotations

import argparse
import sqlite3
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from scp_local.core.config import AppSettings, _load_env_file
from scp_local.core.errors import CryptoSelfTestError
from scp_local.dependencies import Services, build_services

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_SELF_TEST_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path | None) -> AppSettings:
    """Build settings, letting ``env_file`` fill in unset variables."""
    if env_file is not None:
        _load_env_file(str(env_file))
    return AppSettings()


def _print_status(services: Services) -> int:
    authorizations = services.token_manager.list_authorizations()
    if not authorizations:
        print("No merchant authorizations stored.")
        return EXIT_OK
    for info in authorizations:
        expires = info.expires_at.isoformat() if info.expires_at else "unknown"
        print(
            f"{info.domain}: {info.customer_email} "
            f"scopes={','.join(info.scopes)} expires_at={expires}"
        )
    return EXIT_OK


def _purge_cache(services: Services) -> int:
    removed = services.endpoint_store.purge_expired()
    print(f"Removed {removed} expired endpoint cache entr{'y' if removed == 1 else 'ies'}.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate settings and the encrypted credential store."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=None,
            type=Path,
            help="Optional environment file whose values fill in unset variables.",
        )

    add_common_arguments(
        subparsers.add_parser(
            "check", help="Validate settings and run the encryption self-test."
        )
    )
    add_common_arguments(
        subparsers.add_parser("status", help="List stored authorizations.")
    )
    add_common_arguments(
        subparsers.add_parser("purge-cache", help="Drop expired endpoint cache entries.")
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path | None = args.env_file
    if env_file is not None and not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    try:
        services = build_services(settings)
    except CryptoSelfTestError as exc:
        print(f"Encryption self-test failed: {exc}\n{exc.remediation}", file=sys.stderr)
        return EXIT_SELF_TEST_ERROR
    except (OSError, sqlite3.Error) as exc:
        print(f"Could not open credential store: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "status": lambda: _print_status(services),
        "purge-cache": lambda: _purge_cache(services),
    }
    try:
        exit_code = handlers[args.command]()
    finally:
        services.close()

    if args.command == "check":
        print(f"Settings OK; encryption self-test passed ({services.database.path}).")
    return exit_code


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
