"""Connection-level commands: PING, AUTH and keyspace statistics."""

from __future__ import annotations

from typing import Optional, Sequence

from memkv.db import CommandError, Connection, Database, Status

OK = Status("OK")
PONG = Status("PONG")


def _text(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape")
    return value


def ping(conn: Connection, args: Sequence[bytes]) -> Status:
    """PING [message]; replies PONG or echoes the message."""
    if not args:
        return PONG
    if len(args) == 1:
        return Status(_text(args[0]))
    raise CommandError("ERR wrong number of arguments for 'ping' command")


def auth(conn: Connection, args: Sequence[bytes], require_pass: Optional[str]) -> Status:
    """AUTH password; remembers the given password on the connection."""
    if len(args) != 1:
        raise CommandError("ERR wrong number of arguments for 'auth' command")
    if not require_pass:
        raise CommandError("ERR Client sent AUTH, but no password is set")
    given = _text(args[0])
    conn.password = given
    if given != require_pass:
        raise CommandError("ERR invalid password")
    return OK


def is_authenticated(conn: Connection, require_pass: Optional[str]) -> bool:
    """True if no password is required or the connection supplied it."""
    if not require_pass:
        return True
    return conn.password == require_pass


def db_size(db: Database) -> int:
    """Number of keys held in the database."""
    return len(db)


def keyspace_line(index: int, keys: int, expires: int, avg_ttl: int) -> bytes:
    """One line of the keyspace section of INFO."""
    return f"db{index}:keys={keys},expires={expires},avg_ttl={avg_ttl}\r\n".encode()