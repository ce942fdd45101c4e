"""CLI for share tokens, short link maintenance and migrations."""
import argparse
import json
import sys
from pathlib import Path

from innet.components.share_codec import encode_share_token, parse_share_token
from innet.components.share_links import build_share_url
from innet.components.token_locator import locate_token
from innet.core.config import get_settings
from innet.core.database import get_session_local
from innet.core.errors import ShareError
from innet.services.share_link_service import ShareLinkService

ROOT = Path(__file__).resolve().parents[1]


def _read_json(source: str):
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as fh:
        return json.load(fh)


def cmd_encode(args):
    """Encode a payload JSON file ('-' for stdin) into a share token."""
    try:
        payload = _read_json(args.source)
    except (OSError, ValueError) as e:
        print(f"Cannot read payload: {e}", file=sys.stderr)
        return 1

    settings = get_settings()
    encoded = encode_share_token(
        payload,
        soft_limit=settings.share_token_soft_limit,
        fact_text_limit=settings.fact_text_limit,
    )
    print(build_share_url(encoded.token, args.origin) if args.url else encoded.token)
    if encoded.oversize:
        print(
            f"warning: token is {encoded.length} chars (soft limit {encoded.soft_limit}); "
            "the QR code may not scan reliably",
            file=sys.stderr,
        )
    return 0


def cmd_decode(args):
    """Decode a token and print the sanitized payload."""
    result = parse_share_token(args.token, fact_text_limit=get_settings().fact_text_limit)
    if not result.ok:
        print(f"{result.kind}: {result.error.message}", file=sys.stderr)
        return 1
    print(json.dumps(result.payload.to_wire(), ensure_ascii=False, indent=2))
    return 0


def cmd_extract(args):
    """Find a token in scanner output or a link; --resolve follows short links."""
    if not args.resolve:
        location = locate_token(args.raw)
    else:
        db = get_session_local()()
        try:
            location = locate_token(args.raw, resolve_alias=ShareLinkService.from_settings(db).resolve_token)
        finally:
            db.close()

    if location.error is not None:
        print(f"{location.error.kind}: {location.error.message}", file=sys.stderr)
        return 1
    if location.token is None:
        print("No share token found", file=sys.stderr)
        return 1
    print(location.token)
    return 0


def cmd_purge(args):
    """Delete expired short links."""
    db = get_session_local()()
    try:
        deleted = ShareLinkService.from_settings(db).purge_expired()
    except ShareError as e:
        print(f"{e.kind}: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Deleted {deleted} expired short links")
    return 0


def cmd_migrate(args):
    """Run alembic upgrade to the given revision (default head)."""
    from alembic import command
    from alembic.config import Config

    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))
    if args.database_url:
        config.set_main_option("sqlalchemy.url", args.database_url)
    command.upgrade(config, args.revision)
    return 0


def build_parser():
    p = argparse.ArgumentParser(prog="share_links")
    sub = p.add_subparsers(dest="cmd")
    s = sub.add_parser("encode", help="Encode a payload JSON file into a share token")
    s.add_argument("source", help="Path to payload JSON, or '-' for stdin")
    s.add_argument("--url", action="store_true", help="Print the long share link instead of the bare token")
    s.add_argument("--origin", default=None, help="Origin for --url (default: PUBLIC_ORIGIN)")
    s.set_defaults(func=cmd_encode)
    s = sub.add_parser("decode", help="Decode a share token")
    s.add_argument("token")
    s.set_defaults(func=cmd_decode)
    s = sub.add_parser("extract", help="Extract a share token from scanned text or a link")
    s.add_argument("raw")
    s.add_argument("--resolve", action="store_true", help="Resolve short links through the database")
    s.set_defaults(func=cmd_extract)
    s = sub.add_parser("purge", help="Delete expired short links")
    s.set_defaults(func=cmd_purge)
    s = sub.add_parser("migrate", help="Run migrations (upgrade head)")
    s.add_argument("--revision", "-r", default="head", help="Target revision")
    s.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    s.set_defaults(func=cmd_migrate)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
