"""Command-line front end for allowlist key management, signing and inspection."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from logging.handlers import QueueListener
from pathlib import Path

from . import allowlist as allowlist_text
from .artifact import inspect, sign, write_artifact
from .config import LedgeracioConfig, load_config
from .custody import FileKeyCustody, install_public_key
from .errors import LedgeracioError, NetworkMismatchError, UnknownNetworkError
from .keys import generate, read_public_file, read_secret_file, write_key_files
from .logging_setup import (
    configure_plain_logging,
    configure_structured_logging,
    shutdown_listeners,
)
from .network import Network
from .nonce import FileNonceStore
from .storage import FileAccess, atomic_write, read_file

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledgeracio",
        description="Generate signing keys, sign and verify validator allowlists.",
    )
    parser.add_argument("--network", help="Network name: Kusama or Polkadot.")
    parser.add_argument("--config", help="Path to a YAML or JSON configuration file.")
    parser.add_argument("--log-level", help="Logging level (default WARNING).")
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON logs on stderr."
    )
    parser.add_argument(
        "--allow-custom-network",
        action="store_true",
        help="Accept network tags other than Kusama and Polkadot.",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    acl = commands.add_parser("allowlist", help="Allowlist operations.")
    ops = acl.add_subparsers(dest="operation", required=True)

    upload = ops.add_parser("upload", help="Upload a signed allowlist.")
    upload.add_argument("path", type=Path)

    set_key = ops.add_parser(
        "set-key", help="Set the allowlist signing key. Fails if one is already set."
    )
    set_key.add_argument("key", type=Path, help="Public key file from gen-key.")

    ops.add_parser("get-key", help="Show the allowlist signing key.")

    gen_key = ops.add_parser("gen-key", help="Generate a new signing key.")
    gen_key.add_argument(
        "file",
        type=Path,
        help="Prefix without extension; writes FILE.pub and FILE.sec.",
    )

    sign_cmd = ops.add_parser(
        "sign", help="Compile a textual allowlist to binary form and sign it."
    )
    sign_cmd.add_argument("-f", "--file", type=Path, required=True, help="Textual allowlist.")
    sign_cmd.add_argument("-s", "--secret", type=Path, required=True, help="Secret key file.")
    sign_cmd.add_argument("-o", "--output", type=Path, required=True, help="Output file.")
    sign_cmd.add_argument(
        "-n",
        "--nonce",
        type=int,
        required=True,
        help="Must be greater than any nonce previously used with this key.",
    )
    sign_cmd.add_argument(
        "-p", "--public", type=Path, help="Public key file expected to match the secret key."
    )
    sign_cmd.add_argument("--nonce-store", help="JSON file tracking last-used nonces.")

    inspect_cmd = ops.add_parser(
        "inspect", help="Verify a signed allowlist and print its addresses."
    )
    inspect_cmd.add_argument("-f", "--file", type=Path, required=True, help="Binary allowlist.")
    inspect_cmd.add_argument("-p", "--public", type=Path, required=True, help="Public key file.")
    inspect_cmd.add_argument("-o", "--output", type=Path, help="Output file; defaults to stdout.")
    inspect_cmd.add_argument(
        "--json", action="store_true", help="Print a JSON report instead of addresses."
    )
    return parser


def _configure_logging(
    config: LedgeracioConfig, command: str
) -> tuple[list[logging.Handler], list[QueueListener]]:
    root = logging.getLogger("ledgeracio")
    before = list(root.handlers)
    level = logging.getLevelName(config.logging.level)
    if not isinstance(level, int):
        level = logging.WARNING
    listeners: list[QueueListener] = []
    if config.logging.json:
        listeners.append(configure_structured_logging(root, command=command, level=level))
    else:
        configure_plain_logging(root, level=level)
    added = [handler for handler in root.handlers if handler not in before]
    return added, listeners


def _resolve_network(args: argparse.Namespace, config: LedgeracioConfig) -> Network:
    name = args.network or config.network
    if not name:
        raise UnknownNetworkError(None, "a network is required (--network or LEDGERACIO_NETWORK)")
    return Network.from_name(name)


def _gen_key(args: argparse.Namespace, network: Network, allow_custom: bool) -> None:
    with generate(network, allow_custom=allow_custom) as keypair:
        secret_path, public_path = write_key_files(args.file, keypair)
    print(f"Wrote public key to {public_path} and secret key to {secret_path}")


def _sign(
    args: argparse.Namespace,
    network: Network,
    allow_custom: bool,
    config: LedgeracioConfig,
) -> None:
    text = read_file(args.file).decode("utf-8")
    expected_public = None
    if args.public is not None:
        expected_public, public_network = read_public_file(args.public)
        if public_network != network:
            raise NetworkMismatchError(network, public_network, subject="a public key")
    nonce_store = args.nonce_store or config.nonce_store
    tracker = FileNonceStore(nonce_store) if nonce_store else None

    keypair, key_network = read_secret_file(args.secret)
    with keypair:
        if key_network != network:
            raise NetworkMismatchError(network, key_network, subject="a key")
        canonical = allowlist_text.canonicalize(text, network, allow_custom=allow_custom)
        artifact = sign(
            canonical,
            network,
            args.nonce,
            keypair,
            public_key=expected_public,
            nonce_tracker=tracker,
            allow_custom=allow_custom,
        )
    write_artifact(args.output, artifact)


def _inspect(args: argparse.Namespace, network: Network, allow_custom: bool) -> None:
    data = read_file(args.file)
    public_key, key_network = read_public_file(args.public)
    if key_network != network:
        raise NetworkMismatchError(network, key_network, subject="a public key")
    verified = inspect(data, network, public_key, allow_custom=allow_custom)
    if args.json:
        rendered = json.dumps(verified.to_report().model_dump_json_ready(), indent=2) + "\n"
    else:
        rendered = verified.render()
    if args.output is None:
        sys.stdout.write(rendered)
    else:
        atomic_write(args.output, rendered.encode("utf-8"), FileAccess.OWNER_READ_WRITE)


def _dispatch(args: argparse.Namespace, config: LedgeracioConfig) -> None:
    allow_custom = args.allow_custom_network or config.allow_custom_network
    network = _resolve_network(args, config)
    operation = args.operation
    if operation == "gen-key":
        _gen_key(args, network, allow_custom)
    elif operation == "sign":
        _sign(args, network, allow_custom, config)
    elif operation == "inspect":
        _inspect(args, network, allow_custom)
    else:
        custody = FileKeyCustody(config.custody_dir, network, allow_custom=allow_custom)
        if operation == "set-key":
            install_public_key(custody, read_file(args.key), network, allow_custom=allow_custom)
        elif operation == "get-key":
            print(f"Public key is {custody.get_public_key().hex()}")
        elif operation == "upload":
            custody.upload_allowlist(read_file(args.path))


def main(argv: list[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    config = load_config(args.config)
    if args.log_level:
        config.logging.level = args.log_level.upper()
    if args.json_logs:
        config.logging.json = True
    handlers, listeners = _configure_logging(config, f"allowlist {args.operation}")
    try:
        _dispatch(args, config)
        return 0
    except (LedgeracioError, OSError, UnicodeDecodeError) as exc:
        LOGGER.debug("Command failed", exc_info=exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        shutdown_listeners(listeners)
        root = logging.getLogger("ledgeracio")
        for handler in handlers:
            root.removeHandler(handler)


if __name__ == "__main__":
    raise SystemExit(main())
