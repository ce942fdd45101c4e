"""
Tests for the share_links command line tool
"""
import json
from datetime import timedelta

import pytest

from cli import share_links as cli
from innet.components.share_codec import SHARE_PREFIX, encode_share_token
from innet.services.alias_store import AliasRecord, SqlAlchemyAliasStore
from innet.utils.datetime_utils import utc_now


@pytest.fixture
def payload_file(tmp_path, sample_payload):
    path = tmp_path / "payload.json"
    path.write_text(json.dumps(sample_payload, ensure_ascii=False), encoding="utf-8")
    return path


def test_build_parser_and_help():
    parser = cli.build_parser()
    parser.format_help()
    assert cli.main([]) == 2


def test_encode_prints_token(payload_file, capsys):
    assert cli.main(["encode", str(payload_file)]) == 0
    token = capsys.readouterr().out.strip()
    assert token.startswith(SHARE_PREFIX)


def test_encode_long_link(payload_file, capsys):
    assert cli.main(["encode", str(payload_file), "--url", "--origin", "https://example.org"]) == 0
    assert capsys.readouterr().out.startswith("https://example.org/share?token=innet-share%3A")


def test_encode_missing_file(tmp_path, capsys):
    assert cli.main(["encode", str(tmp_path / "absent.json")]) == 1
    assert "Cannot read payload" in capsys.readouterr().err


def test_decode(sample_payload, capsys):
    token = encode_share_token(sample_payload).token
    assert cli.main(["decode", token]) == 0
    decoded = json.loads(capsys.readouterr().out)
    assert decoded["owner"]["id"] == "owner-anna"


def test_decode_failure_names_kind(capsys):
    assert cli.main(["decode", "nonsense"]) == 1
    assert capsys.readouterr().err.startswith("format:")


def test_extract(capsys):
    assert cli.main(["extract", "https://innet.app/share?token=innet-share%3AeyJ2IjoxfQ"]) == 0
    assert capsys.readouterr().out.strip() == "innet-share:eyJ2IjoxfQ"


def test_extract_short_link_needs_resolve(capsys):
    assert cli.main(["extract", "https://innet.app/share/Ab3xYz9Kq"]) == 1


def test_extract_resolves_through_database(db, monkeypatch, capsys):
    SqlAlchemyAliasStore(db).insert(
        AliasRecord(slug="Ab3xYz9Kq", token="innet-share:eyJ2IjoxfQ", expires_at=utc_now() + timedelta(hours=1))
    )
    monkeypatch.setattr(cli, "get_session_local", lambda: (lambda: db))

    assert cli.main(["extract", "--resolve", "https://innet.app/share/Ab3xYz9Kq"]) == 0
    assert capsys.readouterr().out.strip() == "innet-share:eyJ2IjoxfQ"


def test_extract_expired_short_link(db, monkeypatch, capsys):
    SqlAlchemyAliasStore(db).insert(
        AliasRecord(slug="Ab3xYz9Kq", token="innet-share:eyJ2IjoxfQ", expires_at=utc_now() - timedelta(hours=1))
    )
    monkeypatch.setattr(cli, "get_session_local", lambda: (lambda: db))

    assert cli.main(["extract", "--resolve", "https://innet.app/share/Ab3xYz9Kq"]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("not_found:")


def test_purge(db, monkeypatch, capsys):
    store = SqlAlchemyAliasStore(db)
    now = utc_now()
    store.insert(AliasRecord(slug="OLD234567", token="innet-share:a", expires_at=now - timedelta(hours=1)))
    store.insert(AliasRecord(slug="NEW234567", token="innet-share:b", expires_at=now + timedelta(hours=1)))
    monkeypatch.setattr(cli, "get_session_local", lambda: (lambda: db))

    assert cli.main(["purge"]) == 0
    assert "Deleted 1 expired short links" in capsys.readouterr().out
    assert store.get("OLD234567") is None
    assert store.get("NEW234567") is not None


def test_migrate_creates_share_links_table(tmp_path):
    from sqlalchemy import create_engine, inspect

    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    assert cli.main(["migrate", "--database-url", url]) == 0

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert "share_links" in inspector.get_table_names()
        columns = {c["name"] for c in inspector.get_columns("share_links")}
        assert columns == {"slug", "token", "token_hash", "expires_at", "created_at"}
    finally:
        engine.dispose()
