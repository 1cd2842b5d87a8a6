"""Keyspace, command registry and rollback helpers."""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from memkv.zset import SortedSet

CmdLine = List[bytes]
Keys = Tuple[List[str], List[str]]


class CommandError(Exception):
    """An error reply sent back to the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WrongTypeError(CommandError):
    def __init__(self) -> None:
        super().__init__("WRONGTYPE Operation against a key holding the wrong kind of value")


class CommandSyntaxError(CommandError):
    def __init__(self) -> None:
        super().__init__("ERR syntax error")


@dataclass(frozen=True)
class Status:
    """A simple status reply such as ``OK``."""

    text: str


@dataclass
class Command:
    name: str
    handler: Callable[["Database", Sequence[bytes]], Any]
    prepare: Optional[Callable[[Sequence[bytes]], Keys]]
    undo: Optional[Callable[["Database", Sequence[bytes]], List[CmdLine]]]
    arity: int
    write: bool


@dataclass
class Connection:
    """Per-client state: password, transaction queue and watched keys."""

    password: Optional[str] = None
    in_multi: bool = False
    queue: List[CmdLine] = field(default_factory=list)
    watching: Dict[str, int] = field(default_factory=dict)
    tx_errors: List[CommandError] = field(default_factory=list)


_COMMANDS: Dict[str, Command] = {}


def register(name, handler, prepare, undo, arity, write) -> Command:
    command = Command(name.lower(), handler, prepare, undo, arity, write)
    _COMMANDS[command.name] = command
    return command


def lookup(name) -> Optional[Command]:
    if isinstance(name, bytes):
        name = name.decode("utf-8", "surrogateescape")
    return _COMMANDS.get(name.lower())


def validate_arity(arity: int, cmd_line: Sequence[bytes]) -> bool:
    if arity >= 0:
        return len(cmd_line) == arity
    return len(cmd_line) >= -arity


def _to_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


def _to_key(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape")
    return value


def to_cmd_line(*args) -> CmdLine:
    return [_to_bytes(arg) for arg in args]


def format_float(value: float) -> str:
    """Shortest decimal form without exponent, as used on the wire."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return text


def entity_to_cmd(key, value) -> CmdLine:
    """A command line that recreates ``value`` under ``key``."""
    if isinstance(value, (bytes, bytearray)):
        return to_cmd_line("SET", key, bytes(value))
    if isinstance(value, SortedSet):
        line = to_cmd_line("ZADD", key)
        for element in value:
            line += [format_float(element.score).encode(), _to_bytes(element.member)]
        return line
    if isinstance(value, (set, frozenset)):
        return to_cmd_line("SADD", key, *sorted(value))
    raise TypeError(f"cannot serialise value of type {type(value).__name__}")


def read_first_key(args) -> Keys:
    return [], [_to_key(args[0])]


def write_first_key(args) -> Keys:
    return [_to_key(args[0])], []


def read_all_keys(args) -> Keys:
    return [], [_to_key(a) for a in args]


def write_all_keys(args) -> Keys:
    return [_to_key(a) for a in args], []


def no_prepare(args) -> Keys:
    return [], []


def prepare_set_calculate(args) -> Keys:
    return [], [_to_key(a) for a in args]


def prepare_set_calculate_store(args) -> Keys:
    return [_to_key(args[0])], [_to_key(a) for a in args[1:]]


class Database:
    """A single keyspace with expirations and per-key versions."""

    def __init__(self, aof: Optional[Callable[[CmdLine], None]] = None) -> None:
        self._data: Dict[str, Any] = {}
        self._ttl: Dict[str, float] = {}
        self._versions: Dict[str, int] = {}
        self._aof = aof

    def add_aof(self, cmd_line: CmdLine) -> None:
        """Hand a write command to the append-only log, if one is attached."""
        if self._aof is not None:
            self._aof(cmd_line)

    def _expired(self, key: str) -> bool:
        when = self._ttl.get(key)
        if when is not None and when <= time.time():
            self.remove(key)
            return True
        return False

    def get_entity(self, key) -> Any:
        key = _to_key(key)
        if self._expired(key):
            return None
        return self._data.get(key)

    def put_entity(self, key, value) -> None:
        self._data[_to_key(key)] = value

    def put_if_absent(self, key, value) -> bool:
        key = _to_key(key)
        if self.get_entity(key) is not None:
            return False
        self._data[key] = value
        return True

    def put_if_exists(self, key, value) -> bool:
        key = _to_key(key)
        if self.get_entity(key) is None:
            return False
        self._data[key] = value
        return True

    def remove(self, key) -> bool:
        key = _to_key(key)
        self._ttl.pop(key, None)
        return self._data.pop(key, None) is not None

    def expire(self, key, when: float) -> None:
        """Expire ``key`` at ``when``, seconds since the epoch."""
        self._ttl[_to_key(key)] = when

    def persist(self, key) -> None:
        self._ttl.pop(_to_key(key), None)

    def expire_time(self, key) -> Optional[float]:
        key = _to_key(key)
        if self._expired(key):
            return None
        return self._ttl.get(key)

    @property
    def expires(self) -> int:
        """Number of keys carrying an expiration."""
        return len(self._ttl)

    def get_version(self, key) -> int:
        return self._versions.get(_to_key(key), 0)

    def add_version(self, *keys) -> None:
        for key in keys:
            key = _to_key(key)
            self._versions[key] = self._versions.get(key, 0) + 1

    def _typed(self, key, kind):
        value = self.get_entity(key)
        if value is None:
            return None
        if not isinstance(value, kind):
            raise WrongTypeError()
        return value

    def get_as_string(self, key) -> Optional[bytes]:
        return self._typed(key, (bytes, bytearray))

    def get_as_set(self, key) -> Optional[set]:
        return self._typed(key, set)

    def get_as_sorted_set(self, key) -> Optional[SortedSet]:
        return self._typed(key, SortedSet)

    def random_keys(self, count: int) -> List[str]:
        live = [k for k in list(self._data) if not self._expired(k)]
        if not live:
            return []
        return random.choices(live, k=count)

    def flush(self) -> None:
        self._data.clear()
        self._ttl.clear()
        self._versions.clear()

    def __len__(self) -> int:
        return len(self._data)

    def exec(self, cmd_line: Sequence[bytes]) -> Any:
        """Run one command line and return its reply; errors are raised."""
        name = _to_key(cmd_line[0]).lower()
        command = lookup(name)
        if command is None:
            raise CommandError(f"ERR unknown command '{name}'")
        if not validate_arity(command.arity, cmd_line):
            raise CommandError(f"ERR wrong number of arguments for '{name}' command")
        args = list(cmd_line[1:])
        result = command.handler(self, args)
        if command.write and command.prepare is not None:
            self.add_version(*command.prepare(args)[0])
        return result

    def get_undo_logs(self, cmd_line: Sequence[bytes]) -> List[CmdLine]:
        command = lookup(cmd_line[0])
        if command is None or command.undo is None:
            return []
        return command.undo(self, list(cmd_line[1:]))


def _ttl_cmd(db: Database, key) -> CmdLine:
    when = db.expire_time(key)
    if when is None:
        return to_cmd_line("PERSIST", key)
    return to_cmd_line("PEXPIREAT", key, str(int(when * 1000)))


def rollback_given_keys(db: Database, *keys) -> List[CmdLine]:
    lines: List[CmdLine] = []
    for key in keys:
        value = db.get_entity(key)
        lines.append(to_cmd_line("DEL", key))
        if value is not None:
            lines.append(entity_to_cmd(key, value))
            lines.append(_ttl_cmd(db, key))
    return lines


def rollback_first_key(db: Database, args) -> List[CmdLine]:
    return rollback_given_keys(db, _to_key(args[0]))


def rollback_set_members(db: Database, key, *members) -> List[CmdLine]:
    try:
        current = db.get_as_set(key)
    except WrongTypeError:
        return []
    if current is None:
        return [to_cmd_line("DEL", key)]
    return [
        to_cmd_line("SADD" if _to_bytes(m) in current else "SREM", key, m)
        for m in members
    ]


def undo_set_change(db: Database, args) -> List[CmdLine]:
    return rollback_set_members(db, _to_key(args[0]), *args[1:])


def rollback_zset_fields(db: Database, key, *fields) -> List[CmdLine]:
    try:
        zset = db.get_as_sorted_set(key)
    except WrongTypeError:
        return []
    if zset is None:
        return [to_cmd_line("DEL", key)]
    lines: List[CmdLine] = []
    for name in fields:
        element = zset.get(_to_bytes(name))
        if element is None:
            lines.append(to_cmd_line("ZREM", key, name))
        else:
            lines.append(to_cmd_line("ZADD", key, format_float(element.score), name))
    return lines


def _cmd_del(db: Database, args) -> int:
    return sum(db.remove(a) for a in args)


def _undo_del(db: Database, args) -> List[CmdLine]:
    return rollback_given_keys(db, *[_to_key(a) for a in args])


def _cmd_pexpireat(db: Database, args) -> int:
    try:
        ms = int(args[1])
    except ValueError:
        raise CommandError("ERR value is not an integer or out of range") from None
    if db.get_entity(args[0]) is None:
        return 0
    db.expire(args[0], ms / 1000)
    db.add_aof(to_cmd_line("PEXPIREAT", args[0], args[1]))
    return 1


def _cmd_persist(db: Database, args) -> int:
    if db.get_entity(args[0]) is None or db.expire_time(args[0]) is None:
        return 0
    db.persist(args[0])
    db.add_aof(to_cmd_line("PERSIST", args[0]))
    return 1


def _cmd_type(db: Database, args) -> Status:
    value = db.get_entity(args[0])
    if value is None:
        return Status("none")
    if isinstance(value, (bytes, bytearray)):
        return Status("string")
    if isinstance(value, SortedSet):
        return Status("zset")
    if isinstance(value, set):
        return Status("set")
    return Status("none")


register("Del", _cmd_del, write_all_keys, _undo_del, -2, True)
register("PExpireAt", _cmd_pexpireat, write_first_key, rollback_first_key, 3, True)
register("Persist", _cmd_persist, write_first_key, rollback_first_key, 2, True)
register("Type", _cmd_type, read_first_key, None, 2, False)