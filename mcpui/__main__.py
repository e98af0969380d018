"""Command-line tools for inspecting, issuing and validating credentials."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from mcpui.auth.claims import TokenDecodeError, decode_token
from mcpui.auth.signing import SUPPORTED_ALGORITHMS, load_signer
from mcpui.auth.tokens import TokenService
from mcpui.auth.validation import KeySetFetcher, validate_token
from mcpui.config import Config
from mcpui.logging_config import configure_logging


def _load_signer(args: argparse.Namespace, config: Config):
    pem = Path(args.private_key).expanduser().read_bytes()
    algorithm = args.algorithm or config.auth.signing_algorithm
    return load_signer(pem, algorithm=algorithm, key_id=args.key_id or config.auth.key_id or None)


def _cmd_decode(args: argparse.Namespace, _config: Config) -> int:
    try:
        decoded = decode_token(args.token)
    except TokenDecodeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(decoded.model_dump(mode="json"), indent=2))
    return 0


def _cmd_validate(args: argparse.Namespace, config: Config) -> int:
    jwks_url = args.jwks_url or config.auth.jwks_url
    fetcher = KeySetFetcher(timeout_seconds=config.auth.jwks_fetch_timeout_seconds)
    result = validate_token(args.token, jwks_url, fetcher=fetcher)
    if result.valid:
        print(f"valid: scopes={','.join(result.scopes) or '-'}")
        return 0
    print(f"invalid: {result.reason}", file=sys.stderr)
    return 1


def _cmd_jwks(args: argparse.Namespace, config: Config) -> int:
    service = TokenService(
        issuer=config.auth.issuer,
        jwks_url=config.auth.jwks_url,
        signer=_load_signer(args, config),
    )
    print(service.key_set_json())
    return 0


def _cmd_issue(args: argparse.Namespace, config: Config) -> int:
    service = TokenService(
        issuer=args.issuer or config.auth.issuer,
        jwks_url=config.auth.jwks_url,
        signer=_load_signer(args, config),
        token_expiration=config.auth.token_expiration,
    )
    try:
        token = service.issue(args.sub, args.aud, args.scope or [], args.expires)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(token)
    return 0


def _add_key_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--private-key", required=True, help="PEM-encoded private signing key.")
    parser.add_argument("--algorithm", choices=SUPPORTED_ALGORITHMS, help="Signing algorithm of the key.")
    parser.add_argument("--key-id", help="Key identifier published as kid.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mcpui")
    parser.add_argument("--config", type=Path, help="Path to config.yaml.")
    commands = parser.add_subparsers(dest="command", required=True)

    decode = commands.add_parser("decode", help="Print a token's header and payload without verifying it.")
    decode.add_argument("token")
    decode.set_defaults(handler=_cmd_decode)

    validate = commands.add_parser("validate", help="Verify a token against its key set.")
    validate.add_argument("token")
    validate.add_argument("--jwks-url", help="Key set URL (defaults to config jwks_url).")
    validate.set_defaults(handler=_cmd_validate)

    jwks = commands.add_parser("jwks", help="Print the public key set for a private key.")
    _add_key_arguments(jwks)
    jwks.set_defaults(handler=_cmd_jwks)

    issue = commands.add_parser("issue", help="Sign a scoped credential.")
    _add_key_arguments(issue)
    issue.add_argument("--sub", required=True, help="Subject (user id).")
    issue.add_argument("--aud", required=True, help="Audience (UI name).")
    issue.add_argument("--scope", action="append", help="Granted scope; repeatable.")
    issue.add_argument("--expires", type=int, help="Lifetime in seconds.")
    issue.add_argument("--issuer", help="Issuer (defaults to config issuer).")
    issue.set_defaults(handler=_cmd_issue)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = Config(args.config)
    configure_logging(config)
    return args.handler(args, config)


if __name__ == "__main__":
    raise SystemExit(main())
