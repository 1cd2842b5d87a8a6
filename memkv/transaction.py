"""MULTI/EXEC transactions with WATCH and rollback on failure."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from memkv.db import (
    CmdLine,
    CommandError,
    Connection,
    Database,
    Status,
    lookup,
    read_all_keys,
    register,
    validate_arity,
)

OK = Status("OK")
QUEUED = Status("QUEUED")
_EXEC_ABORT = "EXECABORT Transaction discarded because of previous errors."


def _name(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape").lower()
    return value.lower()


def _reset(conn: Connection) -> None:
    conn.in_multi = False
    conn.queue.clear()
    conn.watching.clear()
    conn.tx_errors.clear()


def watch(db: Database, conn: Connection, args) -> Status:
    """Remember the current version of each key."""
    for key in args:
        conn.watching[_name(key) if False else _key(key)] = db.get_version(key)
    return OK


def _key(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape")
    return value


def cmd_getver(db: Database, args) -> int:
    return db.get_version(args[0])


def is_watching_changed(db: Database, watching: Dict[str, int]) -> bool:
    return any(db.get_version(key) != version for key, version in watching.items())


def start_multi(conn: Connection) -> Status:
    if conn.in_multi:
        raise CommandError("ERR MULTI calls can not be nested")
    conn.in_multi = True
    return OK


def _fail(conn: Connection, message: str) -> None:
    error = CommandError(message)
    conn.tx_errors.append(error)
    raise error


def enqueue_cmd(conn: Connection, cmd_line: Sequence[bytes]) -> Status:
    """Queue a command for EXEC, recording and raising any error."""
    name = _name(cmd_line[0])
    command = lookup(name)
    if command is None:
        _fail(conn, f"ERR unknown command '{name}'")
    if command.prepare is None:
        _fail(conn, f"ERR command '{name}' cannot be used in MULTI")
    if not validate_arity(command.arity, cmd_line):
        _fail(conn, f"ERR wrong number of arguments for '{name}' command")
    conn.queue.append(list(cmd_line))
    return QUEUED


def exec_multi(db: Database, conn: Connection):
    if not conn.in_multi:
        raise CommandError("ERR EXEC without MULTI")
    try:
        if conn.tx_errors:
            raise CommandError(_EXEC_ABORT)
        return execute_transaction(db, conn, dict(conn.watching), list(conn.queue))
    finally:
        _reset(conn)


def execute_transaction(db: Database, conn: Connection, watching: Dict[str, int],
                        cmd_lines: List[CmdLine]) -> list:
    """Run queued commands; undo those already run if one fails.

    Returns the list of results, or an empty list if a watched key changed.
    """
    write_keys: List[str] = []
    for cmd_line in cmd_lines:
        write, _ = get_related_keys(cmd_line)
        write_keys.extend(write)

    if is_watching_changed(db, watching):
        return []

    results = []
    undo_logs: List[List[CmdLine]] = []
    aborted = False
    for cmd_line in cmd_lines:
        undo_logs.append(db.get_undo_logs(cmd_line))
        try:
            results.append(db.exec(cmd_line))
        except CommandError:
            aborted = True
            undo_logs.pop()
            break

    if not aborted:
        db.add_version(*write_keys)
        return results

    for lines in reversed(undo_logs):
        for line in lines:
            try:
                db.exec(line)
            except CommandError:
                pass
    raise CommandError(_EXEC_ABORT)


def discard_multi(conn: Connection) -> Status:
    if not conn.in_multi:
        raise CommandError("ERR DISCARD without MULTI")
    _reset(conn)
    return OK


def get_related_keys(cmd_line: Sequence[bytes]) -> Tuple[List[str], List[str]]:
    """Keys a command line writes and reads."""
    command = lookup(cmd_line[0])
    if command is None or command.prepare is None:
        return [], []
    write, read = command.prepare(list(cmd_line[1:]))
    return list(write), list(read)


def handle(db: Database, conn: Connection, cmd_line: Sequence[bytes]):
    """Dispatch one command line for a client, honouring transaction state."""
    name = _name(cmd_line[0])
    if name == "multi":
        return start_multi(conn)
    if name == "exec":
        return exec_multi(db, conn)
    if name == "discard":
        return discard_multi(conn)
    if conn.in_multi:
        return enqueue_cmd(conn, cmd_line)
    if name == "watch":
        if len(cmd_line) < 2:
            raise CommandError("ERR wrong number of arguments for 'watch' command")
        return watch(db, conn, cmd_line[1:])
    return db.exec(cmd_line)


register("GetVer", cmd_getver, read_all_keys, None, 2, False)