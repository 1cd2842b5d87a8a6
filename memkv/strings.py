"""String commands: GET, SET and friends, counters, ranges and RANDOMKEY."""

from __future__ import annotations

import math
import re
import time
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from memkv.db import (
    CmdLine,
    CommandError,
    CommandSyntaxError,
    Database,
    Keys,
    Status,
    WrongTypeError,
    format_float,
    prepare_set_calculate,
    read_all_keys,
    read_first_key,
    register,
    rollback_first_key,
    rollback_given_keys,
    to_cmd_line,
    write_first_key,
)

_NOT_INTEGER = "ERR value is not an integer or out of range"
_NOT_FLOAT = "ERR value is not a valid float"
_INT_PATTERN = re.compile(rb"[+-]?[0-9]+")
_INT_MIN = -(2 ** 63)
_INT_MAX = 2 ** 63 - 1

OK = Status("OK")


class _Policy(Enum):
    UPSERT = "upsert"
    INSERT = "nx"
    UPDATE = "xx"


def _raw(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


def _text(value) -> str:
    return _raw(value).decode("utf-8", "surrogateescape")


def _parse_int(value) -> int:
    """Parse a signed 64-bit decimal integer; raise ValueError otherwise."""
    raw = _raw(value)
    if not _INT_PATTERN.fullmatch(raw):
        raise ValueError(f"invalid integer: {raw!r}")
    number = int(raw)
    if not _INT_MIN <= number <= _INT_MAX:
        raise ValueError(f"integer out of range: {raw!r}")
    return number


def _parse_float(value) -> float:
    """Parse a float strictly; raise ValueError otherwise."""
    text = _text(value)
    if "_" in text or text.strip() != text or not text:
        raise ValueError(f"invalid float: {text!r}")
    number = float(text)
    if math.isinf(number) and "inf" not in text.lower():
        raise ValueError(f"float out of range: {text!r}")
    return number


def _int_arg(value, message: str = _NOT_INTEGER) -> int:
    try:
        return _parse_int(value)
    except ValueError:
        raise CommandError(message) from None


def _float_arg(value) -> float:
    try:
        return _parse_float(value)
    except ValueError:
        raise CommandError(_NOT_FLOAT) from None


def convert_range(start: int, end: int, size: int) -> Optional[Tuple[int, int]]:
    """Turn an inclusive, possibly negative range into a slice ``[beg, end)``.

    Returns None when the range falls outside ``size`` items.
    """
    if start < -size:
        return None
    if start < 0:
        start = size + start
    elif start >= size:
        return None
    if end < -size:
        return None
    if end < 0:
        end = size + end + 1
    elif end < size:
        end = end + 1
    else:
        end = size
    if start > end:
        return None
    return start, end


def _expire_in(db: Database, key, ttl_ms: int) -> None:
    when = time.time() + ttl_ms / 1000
    db.expire(key, when)
    db.add_aof(to_cmd_line("PEXPIREAT", key, str(int(when * 1000))))


def _read_ttl(options: Iterator, unit_ms: int, command: str) -> int:
    raw = next(options, None)
    if raw is None:
        raise CommandSyntaxError()
    try:
        value = _parse_int(raw)
    except ValueError:
        raise CommandSyntaxError() from None
    if value <= 0:
        raise CommandError(f"ERR invalid expire time in {command}")
    return value * unit_ms


def cmd_get(db: Database, args) -> Optional[bytes]:
    """Value bound to the key, or None."""
    return db.get_as_string(args[0])


def cmd_getex(db: Database, args) -> Optional[bytes]:
    """Value of the key, optionally setting or clearing its expiration."""
    key = args[0]
    value = db.get_as_string(key)
    if value is None:
        return None
    ttl: Optional[int] = None
    options = iter(args[1:])
    for raw in options:
        option = _text(raw).upper()
        if option in ("EX", "PX"):
            if ttl is not None:
                raise CommandSyntaxError()
            ttl = _read_ttl(options, 1000 if option == "EX" else 1, "getex")
        elif option == "PERSIST":
            if ttl is not None:
                raise CommandSyntaxError()
            db.persist(key)
    if len(args) > 1:
        if ttl is not None:
            _expire_in(db, key, ttl)
        else:
            db.persist(key)
            db.add_aof(to_cmd_line("persist", key))
    return value


def cmd_set(db: Database, args) -> Optional[Status]:
    """SET key value [NX|XX] [EX seconds|PX milliseconds]."""
    key, value = args[0], _raw(args[1])
    policy = _Policy.UPSERT
    ttl: Optional[int] = None
    options = iter(args[2:])
    for raw in options:
        option = _text(raw).upper()
        if option == "NX":
            if policy is _Policy.UPDATE:
                raise CommandSyntaxError()
            policy = _Policy.INSERT
        elif option == "XX":
            if policy is _Policy.INSERT:
                raise CommandSyntaxError()
            policy = _Policy.UPDATE
        elif option in ("EX", "PX"):
            if ttl is not None:
                raise CommandSyntaxError()
            ttl = _read_ttl(options, 1000 if option == "EX" else 1, "set")
        else:
            raise CommandSyntaxError()

    if policy is _Policy.INSERT:
        stored = db.put_if_absent(key, value)
    elif policy is _Policy.UPDATE:
        stored = db.put_if_exists(key, value)
    else:
        db.put_entity(key, value)
        stored = True

    if not stored:
        return None
    if ttl is not None:
        db.add_aof(to_cmd_line("SET", args[0], args[1]))
        _expire_in(db, key, ttl)
    else:
        db.persist(key)
        db.add_aof(to_cmd_line("set", *args))
    return OK


def cmd_setnx(db: Database, args) -> int:
    stored = db.put_if_absent(args[0], _raw(args[1]))
    db.add_aof(to_cmd_line("setnx", *args))
    return int(stored)


def _set_with_ttl(db: Database, args, unit_ms: int) -> Status:
    key, value = args[0], _raw(args[2])
    try:
        ttl = _parse_int(args[1])
    except ValueError:
        raise CommandSyntaxError() from None
    if ttl <= 0:
        raise CommandError("ERR invalid expire time in setex")
    db.put_entity(key, value)
    db.add_aof(to_cmd_line("setex", *args))
    _expire_in(db, key, ttl * unit_ms)
    return OK


def cmd_setex(db: Database, args) -> Status:
    """SETEX key seconds value."""
    return _set_with_ttl(db, args, 1000)


def cmd_psetex(db: Database, args) -> Status:
    """PSETEX key milliseconds value."""
    return _set_with_ttl(db, args, 1)


def _pairs(args) -> List[Tuple[bytes, bytes]]:
    if len(args) % 2:
        raise CommandSyntaxError()
    return list(zip(args[0::2], args[1::2]))


def prepare_mset(args) -> Keys:
    return [_text(key) for key in args[0::2][: len(args) // 2]], []


def undo_mset(db: Database, args) -> List[CmdLine]:
    write_keys, _ = prepare_mset(args)
    return rollback_given_keys(db, *write_keys)


def prepare_mget(args) -> Keys:
    return [], [_text(key) for key in args]


def cmd_mset(db: Database, args) -> Status:
    for key, value in _pairs(args):
        db.put_entity(key, _raw(value))
    db.add_aof(to_cmd_line("mset", *args))
    return OK


def cmd_mget(db: Database, args) -> List[Optional[bytes]]:
    """Values of all keys; None for missing keys or keys of another type."""
    result: List[Optional[bytes]] = []
    for key in args:
        try:
            result.append(db.get_as_string(key))
        except WrongTypeError:
            result.append(None)
    return result


def cmd_msetnx(db: Database, args) -> int:
    pairs = _pairs(args)
    if any(db.get_entity(key) is not None for key, _ in pairs):
        return 0
    for key, value in pairs:
        db.put_entity(key, _raw(value))
    db.add_aof(to_cmd_line("msetnx", *args))
    return 1


def cmd_getset(db: Database, args) -> Optional[bytes]:
    key = args[0]
    old = db.get_as_string(key)
    db.put_entity(key, _raw(args[1]))
    db.persist(key)
    db.add_aof(to_cmd_line("set", *args))
    return old


def cmd_getdel(db: Database, args) -> Optional[bytes]:
    key = args[0]
    old = db.get_as_string(key)
    if old is None:
        return None
    db.remove(key)
    db.add_aof(to_cmd_line("del", *args))
    return old


def _add_to_int(db: Database, args, delta: int, name: str) -> int:
    key = args[0]
    current = db.get_as_string(key)
    value = delta
    if current is not None:
        value = _int_arg(current) + delta
    db.put_entity(key, str(value).encode())
    db.add_aof(to_cmd_line(name, *args))
    return value


def cmd_incr(db: Database, args) -> int:
    return _add_to_int(db, args, 1, "incr")


def cmd_incrby(db: Database, args) -> int:
    delta = _int_arg(args[1])
    key = args[0]
    current = db.get_as_string(key)
    if current is None:
        db.put_entity(key, _raw(args[1]))
        db.add_aof(to_cmd_line("incrby", *args))
        return delta
    return _add_to_int(db, args, delta, "incrby")


def cmd_incrbyfloat(db: Database, args) -> bytes:
    delta = _float_arg(args[1])
    key = args[0]
    current = db.get_as_string(key)
    if current is None:
        result = _raw(args[1])
    else:
        result = format_float(_float_arg(current) + delta).encode()
    db.put_entity(key, result)
    db.add_aof(to_cmd_line("incrbyfloat", *args))
    return result


def cmd_decr(db: Database, args) -> int:
    return _add_to_int(db, args, -1, "decr")


def cmd_decrby(db: Database, args) -> int:
    delta = _int_arg(args[1])
    return _add_to_int(db, args, -delta, "decrby")


def cmd_strlen(db: Database, args) -> int:
    value = db.get_as_string(args[0])
    return 0 if value is None else len(value)


def cmd_append(db: Database, args) -> int:
    key = args[0]
    value = (db.get_as_string(key) or b"") + _raw(args[1])
    db.put_entity(key, value)
    db.add_aof(to_cmd_line("append", *args))
    return len(value)


def cmd_setrange(db: Database, args) -> int:
    """Overwrite part of the string at an offset, zero-padding as needed."""
    key = args[0]
    offset = _int_arg(args[1])
    if offset < 0:
        raise CommandError("ERR offset is out of range")
    patch = _raw(args[2])
    data = bytearray(db.get_as_string(key) or b"")
    if len(data) < offset:
        data.extend(bytes(offset - len(data)))
    data[offset:offset + len(patch)] = patch
    value = bytes(data)
    db.put_entity(key, value)
    db.add_aof(to_cmd_line("setRange", *args))
    return len(value)


def cmd_getrange(db: Database, args) -> Optional[bytes]:
    start = _int_arg(args[1])
    end = _int_arg(args[2])
    value = db.get_as_string(args[0])
    if value is None:
        return None
    bounds = convert_range(start, end, len(value))
    if bounds is None:
        return None
    return value[bounds[0]:bounds[1]]


def cmd_randomkey(db: Database, args) -> Optional[bytes]:
    keys = db.random_keys(1)
    if not keys:
        return None
    return _raw(keys[0])


register("Set", cmd_set, write_first_key, rollback_first_key, -3, True)
register("SetNx", cmd_setnx, write_first_key, rollback_first_key, 3, True)
register("SetEX", cmd_setex, write_first_key, rollback_first_key, 4, True)
register("PSetEX", cmd_psetex, write_first_key, rollback_first_key, 4, True)
register("MSet", cmd_mset, prepare_mset, undo_mset, -3, True)
register("MGet", cmd_mget, prepare_mget, None, -2, False)
register("MSetNX", cmd_msetnx, prepare_mset, undo_mset, -3, True)
register("Get", cmd_get, read_first_key, None, 2, False)
register("GetEX", cmd_getex, write_first_key, rollback_first_key, -2, False)
register("GetSet", cmd_getset, write_first_key, rollback_first_key, 3, True)
register("GetDel", cmd_getdel, write_first_key, rollback_first_key, 2, True)
register("Incr", cmd_incr, write_first_key, rollback_first_key, 2, True)
register("IncrBy", cmd_incrby, write_first_key, rollback_first_key, 3, True)
register("IncrByFloat", cmd_incrbyfloat, write_first_key, rollback_first_key, 3, True)
register("Decr", cmd_decr, write_first_key, rollback_first_key, 2, True)
register("DecrBy", cmd_decrby, write_first_key, rollback_first_key, 3, True)
register("StrLen", cmd_strlen, read_first_key, None, 2, False)
register("Append", cmd_append, write_first_key, rollback_first_key, 3, True)
register("SetRange", cmd_setrange, write_first_key, rollback_first_key, 4, True)
register("GetRange", cmd_getrange, read_first_key, None, 4, False)
register("Randomkey", cmd_randomkey, read_all_keys, None, 1, False)

__all__ = [
    "convert_range",
    "prepare_mset",
    "undo_mset",
    "prepare_mget",
    "cmd_get",
    "cmd_getex",
    "cmd_set",
    "cmd_setnx",
    "cmd_setex",
    "cmd_psetex",
    "cmd_mset",
    "cmd_mget",
    "cmd_msetnx",
    "cmd_getset",
    "cmd_getdel",
    "cmd_incr",
    "cmd_incrby",
    "cmd_incrbyfloat",
    "cmd_decr",
    "cmd_decrby",
    "cmd_strlen",
    "cmd_append",
    "cmd_setrange",
    "cmd_getrange",
    "cmd_randomkey",
    "prepare_set_calculate",
]