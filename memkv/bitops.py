"""Bit commands on string values: SETBIT, GETBIT, BITCOUNT and BITPOS."""

from __future__ import annotations

from typing import Iterator, Optional, Tuple

from memkv.db import (
    CommandError,
    CommandSyntaxError,
    Database,
    read_first_key,
    register,
    rollback_first_key,
    to_cmd_line,
    write_first_key,
)
from memkv.strings import _parse_int, _text, convert_range

_NOT_INTEGER = "ERR value is not an integer or out of range"
_BAD_OFFSET = "ERR bit offset is not an integer or out of range"
_BAD_BIT = "ERR bit is not an integer or out of range"


def _offset_arg(value) -> int:
    try:
        offset = _parse_int(value)
    except ValueError:
        raise CommandError(_BAD_OFFSET) from None
    if offset < 0:
        raise CommandError(_BAD_OFFSET)
    return offset


def _bit_arg(value) -> int:
    text = _text(value)
    if text == "1":
        return 1
    if text == "0":
        return 0
    raise CommandError(_BAD_BIT)


def _int_arg(value) -> int:
    try:
        return _parse_int(value)
    except ValueError:
        raise CommandError(_NOT_INTEGER) from None


def _get_bit(data: bytes, offset: int) -> int:
    index, shift = divmod(offset, 8)
    if index >= len(data):
        return 0
    return (data[index] >> shift) & 1


def _set_bit(data: bytearray, offset: int, bit: int) -> None:
    index, shift = divmod(offset, 8)
    if index >= len(data):
        data.extend(bytes(index + 1 - len(data)))
    if bit:
        data[index] |= 1 << shift
    else:
        data[index] &= ~(1 << shift) & 0xFF


def _bits(data: bytes, begin: int, end: int) -> Iterator[Tuple[int, int]]:
    """Yield ``(offset, bit)`` for bits in ``[begin, end)``; end 0 means all."""
    limit = len(data) * 8
    if end <= 0 or end > limit:
        end = limit
    for offset in range(begin, end):
        yield offset, _get_bit(data, offset)


def _byte_mode(value) -> bool:
    mode = _text(value).lower()
    if mode == "bit":
        return False
    if mode == "byte":
        return True
    raise CommandSyntaxError()


def _range(args, first: int, size: int) -> Optional[Tuple[int, int]]:
    """Parse ``start end`` at ``args[first]``; (0, 0) when absent, None if empty."""
    if len(args) <= first:
        return 0, 0
    if len(args) <= first + 1:
        raise CommandSyntaxError()
    start = _int_arg(args[first])
    end = _int_arg(args[first + 1])
    return convert_range(start, end, size)


def cmd_setbit(db: Database, args) -> int:
    """SETBIT key offset 0|1; returns the bit's former value."""
    key = args[0]
    offset = _offset_arg(args[1])
    bit = _bit_arg(args[2])
    data = bytearray(db.get_as_string(key) or b"")
    former = _get_bit(data, offset)
    _set_bit(data, offset, bit)
    db.put_entity(key, bytes(data))
    db.add_aof(to_cmd_line("setBit", *args))
    return former


def cmd_getbit(db: Database, args) -> int:
    """GETBIT key offset."""
    offset = _offset_arg(args[1])
    data = db.get_as_string(args[0])
    if data is None:
        return 0
    return _get_bit(data, offset)


def cmd_bitcount(db: Database, args) -> int:
    """BITCOUNT key [start end [BYTE|BIT]]."""
    data = db.get_as_string(args[0])
    if data is None:
        return 0
    byte_mode = _byte_mode(args[3]) if len(args) > 3 else True
    size = len(data) if byte_mode else len(data) * 8
    bounds = _range(args, 1, size)
    if bounds is None:
        return 0
    begin, end = bounds
    if byte_mode:
        chunk = data[begin:end] if end else data[begin:]
        return sum(byte.bit_count() for byte in chunk)
    return sum(bit for _, bit in _bits(data, begin, end))


def cmd_bitpos(db: Database, args) -> int:
    """BITPOS key 0|1 [start end [BYTE|BIT]]; -1 if no such bit."""
    data = db.get_as_string(args[0])
    if data is None:
        return -1
    wanted = _bit_arg(args[1])
    byte_mode = _byte_mode(args[4]) if len(args) > 4 else True
    size = len(data) if byte_mode else len(data) * 8
    bounds = _range(args, 2, size)
    if bounds is None:
        return 0
    begin, end = bounds
    if byte_mode:
        begin *= 8
        end *= 8
    return next((offset for offset, bit in _bits(data, begin, end) if bit == wanted), -1)


register("SetBit", cmd_setbit, write_first_key, rollback_first_key, 4, True)
register("GetBit", cmd_getbit, read_first_key, None, 3, False)
register("BitCount", cmd_bitcount, read_first_key, None, -2, False)
register("BitPos", cmd_bitpos, read_first_key, None, -3, False)