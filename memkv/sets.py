"""Set commands: SADD, SREM, SPOP, set algebra and SRANDMEMBER."""

from __future__ import annotations

import random
from typing import List, Optional, Sequence

from memkv.db import (
    CommandError,
    Database,
    prepare_set_calculate,
    prepare_set_calculate_store,
    read_first_key,
    register,
    rollback_first_key,
    to_cmd_line,
    undo_set_change,
    write_first_key,
)
from memkv.strings import _int_arg, _parse_int, _raw


def _get_or_init(db: Database, key) -> set:
    members = db.get_as_set(key)
    if members is None:
        members = set()
        db.put_entity(key, members)
    return members


def _collect(db: Database, keys: Sequence) -> List[Optional[set]]:
    return [db.get_as_set(key) for key in keys]


def _union(sets: Sequence[Optional[set]]) -> set:
    return set().union(*[s for s in sets if s])


def _diff(sets: Sequence[Optional[set]]) -> set:
    if not sets or not sets[0]:
        return set()
    return sets[0].difference(*[s for s in sets[1:] if s])


def cmd_sadd(db: Database, args) -> int:
    """SADD key member [member ...]; returns the number of new members."""
    members = _get_or_init(db, args[0])
    added = 0
    for raw in args[1:]:
        member = _raw(raw)
        if member not in members:
            members.add(member)
            added += 1
    db.add_aof(to_cmd_line("sadd", *args))
    return added


def cmd_sismember(db: Database, args) -> int:
    members = db.get_as_set(args[0])
    if members is None:
        return 0
    return int(_raw(args[1]) in members)


def cmd_srem(db: Database, args) -> int:
    """SREM key member [member ...]; drops the key once it is empty."""
    key = args[0]
    members = db.get_as_set(key)
    if members is None:
        return 0
    removed = 0
    for raw in args[1:]:
        member = _raw(raw)
        if member in members:
            members.discard(member)
            removed += 1
    if not members:
        db.remove(key)
    if removed > 0:
        db.add_aof(to_cmd_line("srem", *args))
    return removed


def cmd_spop(db: Database, args) -> Optional[List[bytes]]:
    """SPOP key [count]; removes and returns distinct random members."""
    if len(args) not in (1, 2):
        raise CommandError("ERR wrong number of arguments for 'spop' command")
    members = db.get_as_set(args[0])
    if members is None:
        return None
    count = 1
    if len(args) == 2:
        try:
            count = _parse_int(args[1])
        except ValueError:
            count = 0
        if count <= 0:
            raise CommandError("ERR value is out of range, must be positive")
    count = min(count, len(members))
    popped = random.sample(list(members), count)
    members.difference_update(popped)
    if count > 0:
        db.add_aof(to_cmd_line("spop", *args))
    return popped


def cmd_scard(db: Database, args) -> int:
    members = db.get_as_set(args[0])
    return 0 if members is None else len(members)


def cmd_smembers(db: Database, args) -> List[bytes]:
    members = db.get_as_set(args[0])
    if members is None:
        return []
    return list(members)


def cmd_sinter(db: Database, args) -> List[bytes]:
    """Members common to all given sets; empty if any set is missing."""
    sets = []
    for key in args:
        members = db.get_as_set(key)
        if not members:
            return []
        sets.append(members)
    return list(set.intersection(*sets))


def cmd_sinterstore(db: Database, args) -> int:
    dest = args[0]
    sets = []
    for key in args[1:]:
        members = db.get_as_set(key)
        if not members:
            return 0
        sets.append(members)
    result = set.intersection(*sets)
    db.put_entity(dest, result)
    db.add_aof(to_cmd_line("sinterstore", *args))
    return len(result)


def cmd_sunion(db: Database, args) -> List[bytes]:
    return list(_union(_collect(db, args)))


def cmd_sunionstore(db: Database, args) -> int:
    dest = args[0]
    result = _union(_collect(db, args[1:]))
    db.remove(dest)
    if not result:
        return 0
    db.put_entity(dest, result)
    db.add_aof(to_cmd_line("sunionstore", *args))
    return len(result)


def cmd_sdiff(db: Database, args) -> List[bytes]:
    """Members of the first set that are in none of the others."""
    return list(_diff(_collect(db, args)))


def cmd_sdiffstore(db: Database, args) -> int:
    dest = args[0]
    result = _diff(_collect(db, args[1:]))
    db.remove(dest)
    if not result:
        return 0
    db.put_entity(dest, result)
    db.add_aof(to_cmd_line("sdiffstore", *args))
    return len(result)


def cmd_srandmember(db: Database, args):
    """SRANDMEMBER key [count]; positive count gives distinct members,
    negative count may repeat them."""
    if len(args) not in (1, 2):
        raise CommandError("ERR wrong number of arguments for 'srandmember' command")
    members = db.get_as_set(args[0])
    if members is None:
        return None
    pool = list(members)
    if len(args) == 1:
        return random.choice(pool) if pool else None
    count = _int_arg(args[1])
    if count > 0:
        return random.sample(pool, min(count, len(pool)))
    if count < 0:
        if not pool:
            return []
        return random.choices(pool, k=-count)
    return []


register("SAdd", cmd_sadd, write_first_key, undo_set_change, -3, True)
register("SIsMember", cmd_sismember, read_first_key, None, 3, False)
register("SRem", cmd_srem, write_first_key, undo_set_change, -3, True)
register("SPop", cmd_spop, write_first_key, undo_set_change, -2, True)
register("SCard", cmd_scard, read_first_key, None, 2, False)
register("SMembers", cmd_smembers, read_first_key, None, 2, False)
register("SInter", cmd_sinter, prepare_set_calculate, None, -2, False)
register("SInterStore", cmd_sinterstore, prepare_set_calculate_store, rollback_first_key, -3, True)
register("SUnion", cmd_sunion, prepare_set_calculate, None, -2, False)
register("SUnionStore", cmd_sunionstore, prepare_set_calculate_store, rollback_first_key, -3, True)
register("SDiff", cmd_sdiff, prepare_set_calculate, None, -2, False)
register("SDiffStore", cmd_sdiffstore, prepare_set_calculate_store, rollback_first_key, -3, True)
register("SRandMember", cmd_srandmember, read_first_key, None, -2, False)