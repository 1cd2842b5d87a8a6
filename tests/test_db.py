import time

import pytest

from memkv.db import (
    CommandError,
    Database,
    Status,
    WrongTypeError,
    entity_to_cmd,
    format_float,
    lookup,
    prepare_set_calculate_store,
    read_first_key,
    rollback_first_key,
    rollback_given_keys,
    rollback_set_members,
    rollback_zset_fields,
    to_cmd_line,
    undo_set_change,
    validate_arity,
    write_all_keys,
)
from memkv.zset import SortedSet


@pytest.fixture
def db():
    return Database()


def test_format_float():
    assert format_float(1.0) == "1"
    assert format_float(0.5) == "0.5"
    assert format_float(1e20) == "100000000000000000000"
    assert format_float(float("inf")) == "+Inf"


def test_validate_arity():
    assert validate_arity(2, [b"get", b"k"])
    assert not validate_arity(2, [b"get"])
    assert validate_arity(-2, [b"del", b"a", b"b"])
    assert not validate_arity(-2, [b"del"])


def test_prepare_helpers():
    assert read_first_key([b"k"]) == ([], ["k"])
    assert write_all_keys([b"a", b"b"]) == (["a", "b"], [])
    assert prepare_set_calculate_store([b"d", b"x", b"y"]) == (["d"], ["x", "y"])


def test_exec_unknown_and_arity(db):
    with pytest.raises(CommandError, match="ERR unknown command 'nope'"):
        db.exec(to_cmd_line("NOPE"))
    with pytest.raises(CommandError, match="ERR wrong number of arguments for 'del' command"):
        db.exec(to_cmd_line("DEL"))
    assert lookup("Del").name == "del"


def test_exec_del_and_type_and_versions(db):
    db.put_entity("k", b"v")
    assert db.exec(to_cmd_line("TYPE", "k")) == Status("string")
    assert db.exec(to_cmd_line("DEL", "k", "missing")) == 1
    assert db.get_version("k") == 1
    assert db.exec(to_cmd_line("TYPE", "k")) == Status("none")


def test_wrong_type(db):
    db.put_entity("s", {b"a"})
    with pytest.raises(WrongTypeError):
        db.get_as_string("s")


def test_expiration(db):
    db.put_entity("k", b"v")
    db.expire("k", time.time() - 1)
    assert db.get_entity("k") is None
    assert len(db) == 0


def test_put_policies(db):
    assert db.put_if_exists("k", b"v") is False
    assert db.put_if_absent("k", b"v") is True
    assert db.put_if_absent("k", b"w") is False
    assert db.get_as_string("k") == b"v"


def test_rollback_given_keys_string_with_ttl(db):
    value = b"value"
    db.put_entity("key", value)
    when = time.time() + 200
    db.expire("key", when)
    undo = rollback_given_keys(db, "key")
    assert undo[0] == to_cmd_line("DEL", "key")
    assert undo[1] == to_cmd_line("SET", "key", value)
    assert undo[2] == to_cmd_line("PEXPIREAT", "key", str(int(when * 1000)))
    db.put_entity("key", value + b"x")
    db.expire("key", time.time() + 1000)
    db.exec(undo[0])
    db.put_entity("key", undo[1][2])
    db.exec(undo[2])
    assert db.get_as_string("key") == value
    assert abs(db.expire_time("key") - when) < 0.001


def test_rollback_missing_key(db):
    assert rollback_given_keys(db, "key") == [to_cmd_line("DEL", "key")]


def test_rollback_first_key_persistent(db):
    db.put_entity("key", {b"v"})
    assert rollback_first_key(db, [b"key", b"v2"]) == [
        to_cmd_line("DEL", "key"),
        to_cmd_line("SADD", "key", "v"),
        to_cmd_line("PERSIST", "key"),
    ]


def test_rollback_set_members(db):
    db.put_entity("key", {b"value"})
    assert undo_set_change(db, [b"key", b"value", b"other"]) == [
        to_cmd_line("SADD", "key", "value"),
        to_cmd_line("SREM", "key", "other"),
    ]
    db.remove("key")
    assert rollback_set_members(db, "key", "value") == [to_cmd_line("DEL", "key")]


def test_rollback_zset_fields(db):
    zs = SortedSet()
    zs.add(b"value", 1.0)
    db.put_entity("key", zs)
    assert rollback_zset_fields(db, "key", "value", "value2") == [
        to_cmd_line("ZADD", "key", "1", "value"),
        to_cmd_line("ZREM", "key", "value2"),
    ]
    db.remove("key")
    assert rollback_zset_fields(db, "key", "value") == [to_cmd_line("DEL", "key")]


def test_entity_to_cmd_zset():
    zs = SortedSet()
    zs.add(b"m", 1.0)
    assert entity_to_cmd("k", zs) == to_cmd_line("ZADD", "k", "1", "m")


def test_get_undo_logs(db):
    db.put_entity("a", b"1")
    assert db.get_undo_logs(to_cmd_line("DEL", "a")) == [
        to_cmd_line("DEL", "a"),
        to_cmd_line("SET", "a", "1"),
        to_cmd_line("PERSIST", "a"),
    ]
    assert db.get_undo_logs(to_cmd_line("TYPE", "a")) == []