"""Sorted set commands: ZADD, ZRANGE, ZRANGEBYSCORE, ZRANGEBYLEX and friends."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from memkv.db import (
    CmdLine,
    CommandError,
    CommandSyntaxError,
    Database,
    format_float,
    read_first_key,
    register,
    rollback_first_key,
    rollback_zset_fields,
    to_cmd_line,
    write_first_key,
)
from memkv.strings import _float_arg, _int_arg, _raw, _text
from memkv.zset import Border, Element, SortedSet, parse_lex_border, parse_score_border


def _get_or_init(db: Database, key) -> SortedSet:
    zset = db.get_as_sorted_set(key)
    if zset is None:
        zset = SortedSet()
        db.put_entity(key, zset)
    return zset


def _score_border(value) -> Border:
    try:
        return parse_score_border(value)
    except ValueError as err:
        raise CommandError(str(err)) from None


def _lex_border(value) -> Border:
    try:
        return parse_lex_border(value)
    except ValueError as err:
        raise CommandError(str(err)) from None


def _score_bytes(score: float) -> bytes:
    return format_float(score).encode()


def _reply(elements: Iterable[Element], with_scores: bool) -> List[bytes]:
    result: List[bytes] = []
    for element in elements:
        result.append(element.member)
        if with_scores:
            result.append(_score_bytes(element.score))
    return result


def _rank_bounds(start: int, stop: int, size: int) -> Optional[Tuple[int, int]]:
    """Turn inclusive, possibly negative ranks into ``[start, stop)``; None if empty."""
    if start < -size:
        start = 0
    elif start < 0:
        start = size + start
    elif start >= size:
        return None
    if stop < -size:
        stop = 0
    elif stop < 0:
        stop = size + stop + 1
    elif stop < size:
        stop = stop + 1
    else:
        stop = size
    return start, max(stop, start)


def cmd_zadd(db: Database, args) -> int:
    """ZADD key score member [score member ...]; returns the number of new members."""
    if len(args) % 2 != 1:
        raise CommandSyntaxError()
    pairs = [
        (_raw(member), _float_arg(score))
        for score, member in zip(args[1::2], args[2::2])
    ]
    zset = _get_or_init(db, args[0])
    added = sum(zset.add(member, score) for member, score in pairs)
    db.add_aof(to_cmd_line("zadd", *args))
    return added


def undo_zadd(db: Database, args) -> List[CmdLine]:
    return rollback_zset_fields(db, _text(args[0]), *args[2::2])


def cmd_zscore(db: Database, args) -> Optional[bytes]:
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return None
    element = zset.get(_raw(args[1]))
    if element is None:
        return None
    return _score_bytes(element.score)


def _rank(db: Database, args, desc: bool) -> Optional[int]:
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return None
    rank = zset.get_rank(_raw(args[1]), desc)
    return None if rank < 0 else rank


def cmd_zrank(db: Database, args) -> Optional[int]:
    """Ascending, zero-based rank of a member."""
    return _rank(db, args, False)


def cmd_zrevrank(db: Database, args) -> Optional[int]:
    """Descending, zero-based rank of a member."""
    return _rank(db, args, True)


def cmd_zcard(db: Database, args) -> int:
    zset = db.get_as_sorted_set(args[0])
    return 0 if zset is None else len(zset)


def _range_by_rank(db: Database, key, start: int, stop: int,
                   with_scores: bool, desc: bool) -> List[bytes]:
    zset = db.get_as_sorted_set(key)
    if zset is None:
        return []
    bounds = _rank_bounds(start, stop, len(zset))
    if bounds is None:
        return []
    return _reply(zset.range_by_rank(bounds[0], bounds[1], desc), with_scores)


def _parse_rank_range(args, name: str, case_sensitive: bool) -> Tuple[int, int, bool]:
    if len(args) not in (3, 4):
        raise CommandError(f"ERR wrong number of arguments for '{name}' command")
    with_scores = False
    if len(args) == 4:
        option = _text(args[3])
        if not case_sensitive:
            option = option.upper()
        if option != "WITHSCORES":
            raise CommandError("syntax error")
        with_scores = True
    return _int_arg(args[1]), _int_arg(args[2]), with_scores


def cmd_zrange(db: Database, args) -> List[bytes]:
    """ZRANGE key start stop [WITHSCORES], ascending."""
    start, stop, with_scores = _parse_rank_range(args, "zrange", False)
    return _range_by_rank(db, args[0], start, stop, with_scores, False)


def cmd_zrevrange(db: Database, args) -> List[bytes]:
    """ZREVRANGE key start stop [WITHSCORES], descending."""
    start, stop, with_scores = _parse_rank_range(args, "zrevrange", True)
    return _range_by_rank(db, args[0], start, stop, with_scores, True)


def cmd_zcount(db: Database, args) -> int:
    low = _score_border(args[1])
    high = _score_border(args[2])
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return 0
    return zset.range_count(low, high)


def _score_options(args) -> Tuple[bool, int, int]:
    """Parse ``[WITHSCORES] [LIMIT offset count]``; a negative count means no limit."""
    with_scores = False
    offset, limit = 0, -1
    options = iter(args[3:])
    for raw in options:
        option = _text(raw).upper()
        if option == "WITHSCORES":
            with_scores = True
        elif option == "LIMIT":
            try:
                raw_offset, raw_count = next(options), next(options)
            except StopIteration:
                raise CommandSyntaxError() from None
            offset = _int_arg(raw_offset)
            limit = _int_arg(raw_count)
        else:
            raise CommandSyntaxError()
    return with_scores, offset, limit


def _range_by_score(db: Database, args, desc: bool) -> List[bytes]:
    if len(args) < 3:
        raise CommandError("ERR wrong number of arguments for 'zrangebyscore' command")
    low_arg, high_arg = (args[2], args[1]) if desc else (args[1], args[2])
    low = _score_border(low_arg)
    high = _score_border(high_arg)
    with_scores, offset, limit = _score_options(args)
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return []
    return _reply(zset.range(low, high, offset, limit, desc), with_scores)


def cmd_zrangebyscore(db: Database, args) -> List[bytes]:
    """ZRANGEBYSCORE key min max [WITHSCORES] [LIMIT offset count]."""
    return _range_by_score(db, args, False)


def cmd_zrevrangebyscore(db: Database, args) -> List[bytes]:
    """ZREVRANGEBYSCORE key max min [WITHSCORES] [LIMIT offset count]."""
    return _range_by_score(db, args, True)


def cmd_zremrangebyscore(db: Database, args):
    if len(args) != 3:
        raise CommandError("ERR wrong number of arguments for 'zremrangebyscore' command")
    low = _score_border(args[1])
    high = _score_border(args[2])
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return []
    removed = zset.remove_range(low, high)
    if removed > 0:
        db.add_aof(to_cmd_line("zremrangebyscore", *args))
    return removed


def cmd_zremrangebyrank(db: Database, args) -> int:
    start = _int_arg(args[1])
    stop = _int_arg(args[2])
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return 0
    bounds = _rank_bounds(start, stop, len(zset))
    if bounds is None:
        return 0
    removed = zset.remove_by_rank(*bounds)
    if removed > 0:
        db.add_aof(to_cmd_line("zremrangebyrank", *args))
    return removed


def cmd_zpopmin(db: Database, args) -> List[bytes]:
    """ZPOPMIN key [count]; returns member, score pairs flattened."""
    count = _int_arg(args[1]) if len(args) > 1 else 1
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return []
    removed = zset.pop_min(count)
    if removed:
        db.add_aof(to_cmd_line("zpopmin", *args))
    return _reply(removed, True)


def cmd_zrem(db: Database, args) -> int:
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return 0
    deleted = sum(zset.remove(_raw(member)) for member in args[1:])
    if deleted > 0:
        db.add_aof(to_cmd_line("zrem", *args))
    return deleted


def undo_zrem(db: Database, args) -> List[CmdLine]:
    return rollback_zset_fields(db, _text(args[0]), *args[1:])


def cmd_zincrby(db: Database, args) -> bytes:
    """ZINCRBY key increment member; returns the new score."""
    delta = _float_arg(args[1])
    member = _raw(args[2])
    zset = _get_or_init(db, args[0])
    element = zset.get(member)
    if element is None:
        zset.add(member, delta)
        db.add_aof(to_cmd_line("zincrby", *args))
        return _raw(args[1])
    score = element.score + delta
    zset.add(member, score)
    db.add_aof(to_cmd_line("zincrby", *args))
    return _score_bytes(score)


def undo_zincr(db: Database, args) -> List[CmdLine]:
    return rollback_zset_fields(db, _text(args[0]), args[2])


def cmd_zlexcount(db: Database, args) -> int:
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return 0
    low = _lex_border(args[1])
    high = _lex_border(args[2])
    return zset.range_count(low, high)


def _range_by_lex(db: Database, args, desc: bool):
    n = len(args)
    if n > 3 and _text(args[3]).lower() != "limit":
        raise CommandSyntaxError()
    if n not in (3, 6):
        raise CommandError("ERR wrong number of arguments for 'zrangebylex' command")
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return 0
    low_arg, high_arg = (args[2], args[1]) if desc else (args[1], args[2])
    low = _lex_border(low_arg)
    high = _lex_border(high_arg)
    offset, limit = 0, -1
    if n > 3:
        offset = _int_arg(args[4])
        if offset < 0:
            return []
        count = _int_arg(args[5])
        if count >= 0:
            limit = count
    return [element.member for element in zset.range(low, high, offset, limit, desc)]


def cmd_zrangebylex(db: Database, args):
    """ZRANGEBYLEX key min max [LIMIT offset count]."""
    return _range_by_lex(db, args, False)


def cmd_zrevrangebylex(db: Database, args):
    """ZREVRANGEBYLEX key max min [LIMIT offset count]."""
    return _range_by_lex(db, args, True)


def cmd_zremrangebylex(db: Database, args) -> int:
    if len(args) != 3:
        raise CommandError("ERR wrong number of arguments for 'zremrangebylex' command")
    zset = db.get_as_sorted_set(args[0])
    if zset is None:
        return 0
    low = _lex_border(args[1])
    high = _lex_border(args[2])
    return zset.remove_range(low, high)


register("ZAdd", cmd_zadd, write_first_key, undo_zadd, -4, True)
register("ZScore", cmd_zscore, read_first_key, None, 3, False)
register("ZIncrBy", cmd_zincrby, write_first_key, undo_zincr, 4, True)
register("ZRank", cmd_zrank, read_first_key, None, 3, False)
register("ZCount", cmd_zcount, read_first_key, None, 4, False)
register("ZRevRank", cmd_zrevrank, read_first_key, None, 3, False)
register("ZCard", cmd_zcard, read_first_key, None, 2, False)
register("ZRange", cmd_zrange, read_first_key, None, -4, False)
register("ZRangeByScore", cmd_zrangebyscore, read_first_key, None, -4, False)
register("ZRevRange", cmd_zrevrange, read_first_key, None, -4, False)
register("ZRevRangeByScore", cmd_zrevrangebyscore, read_first_key, None, -4, False)
register("ZPopMin", cmd_zpopmin, write_first_key, rollback_first_key, -2, True)
register("ZRem", cmd_zrem, write_first_key, undo_zrem, -3, True)
register("ZRemRangeByScore", cmd_zremrangebyscore, write_first_key, rollback_first_key, 4, True)
register("ZRemRangeByRank", cmd_zremrangebyrank, write_first_key, rollback_first_key, 4, True)
register("ZLexCount", cmd_zlexcount, read_first_key, None, 4, False)
register("ZRangeByLex", cmd_zrangebylex, read_first_key, None, -4, False)
register("ZRemRangeByLex", cmd_zremrangebylex, write_first_key, rollback_first_key, 4, True)
register("ZRevRangeByLex", cmd_zrevrangebylex, read_first_key, None, -4, False)