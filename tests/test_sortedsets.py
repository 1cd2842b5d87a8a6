import pytest

import memkv.strings  # noqa: F401  registers SET
from memkv.db import CommandError, Database, WrongTypeError, to_cmd_line
from memkv.sortedsets import (
    cmd_zadd,
    cmd_zrangebylex,
    cmd_zremrangebyscore,
    undo_zadd,
    undo_zrem,
    undo_zincr,
)

SIZE = 100
MEMBERS = [str(i).encode() for i in range(SIZE)]
REVERSED = list(reversed(MEMBERS))
LETTERS = [b"a", b"b", b"c", b"d", b"e"]


@pytest.fixture
def db():
    return Database()


def run(db, *args):
    return db.exec(to_cmd_line(*args))


@pytest.fixture
def numbered(db):
    args = ["zadd", "k"]
    for i in range(SIZE):
        args += [str(i), str(i)]
    assert run(db, *args) == SIZE
    return db


@pytest.fixture
def lettered(db):
    run(db, "ZAdd", "k", "0", "e", "0", "d", "0", "c", "0", "b", "0", "a")
    return db


def test_zadd_new_and_update(db):
    names = [f"m{i}".encode() for i in range(SIZE)]
    args = ["zadd", "k"]
    for i, name in enumerate(names):
        args += [f"{i}.5", name]
    assert run(db, *args) == SIZE
    for i, name in enumerate(names):
        assert run(db, "ZScore", "k", name) == f"{i}.5".encode()
    assert run(db, "zcard", "k") == SIZE

    args = ["zadd", "k"]
    for i, name in enumerate(names):
        args += [f"{i + 100}.25", name]
    assert run(db, *args) == 0
    for i, name in enumerate(names):
        assert run(db, "zscore", "k", name) == f"{i + 100}.25".encode()


def test_zadd_errors(db):
    with pytest.raises(CommandError, match="ERR syntax error"):
        cmd_zadd(db, to_cmd_line("k", "1", "a", "2"))
    with pytest.raises(CommandError, match="ERR value is not a valid float"):
        run(db, "zadd", "k", "x", "a")
    with pytest.raises(CommandError, match="wrong number of arguments for 'zadd'"):
        run(db, "zadd", "k", "1")


def test_zscore_missing(db):
    assert run(db, "zscore", "nope", "a") is None
    run(db, "zadd", "k", "1", "a")
    assert run(db, "zscore", "k", "b") is None


def test_zrank(numbered):
    for i, member in enumerate(MEMBERS):
        assert run(numbered, "zrank", "k", member) == i
        assert run(numbered, "ZRevRank", "k", member) == SIZE - i - 1
    assert run(numbered, "zrank", "k", "missing") is None
    assert run(numbered, "zrank", "nokey", "0") is None


@pytest.mark.parametrize(
    "start,end,forward,backward",
    [
        ("0", "9", MEMBERS[0:10], REVERSED[0:10]),
        ("0", "200", MEMBERS, REVERSED),
        ("0", "-10", MEMBERS[0:91], REVERSED[0:91]),
        ("0", "-200", [], []),
        ("-10", "-1", MEMBERS[90:], REVERSED[90:]),
    ],
)
def test_zrange(numbered, start, end, forward, backward):
    assert run(numbered, "ZRange", "k", start, end) == forward
    assert run(numbered, "ZRevRange", "k", start, end) == backward


def test_zrange_withscores(numbered):
    result = run(numbered, "ZRange", "k", "0", "9", "WITHSCORES")
    assert len(result) == 20
    assert result[:4] == [b"0", b"0", b"1", b"1"]


def test_zrange_errors(numbered):
    with pytest.raises(CommandError, match="^syntax error$"):
        run(numbered, "ZRange", "k", "0", "1", "bad")
    with pytest.raises(CommandError, match="^syntax error$"):
        run(numbered, "ZRevRange", "k", "0", "1", "withscores")
    with pytest.raises(CommandError, match="not an integer"):
        run(numbered, "ZRange", "k", "a", "1")
    with pytest.raises(CommandError, match="wrong number of arguments for 'zrange'"):
        run(numbered, "ZRange", "k", "0", "1", "WITHSCORES", "x")
    assert run(numbered, "ZRange", "nokey", "0", "-1") == []


@pytest.mark.parametrize(
    "low,high,expected",
    [
        ("20", "30", MEMBERS[20:31]),
        ("-10", "10", MEMBERS[0:11]),
        ("90", "110", MEMBERS[90:]),
        ("(20", "(30", MEMBERS[21:30]),
    ],
)
def test_zrangebyscore(numbered, low, high, expected):
    assert run(numbered, "ZRangeByScore", "k", low, high) == expected
    assert run(numbered, "ZRevRangeByScore", "k", high, low) == list(reversed(expected))


def test_zrangebyscore_options(numbered):
    assert len(run(numbered, "ZRangeByScore", "k", "20", "30", "WithScores")) == 22
    assert run(numbered, "ZRangeByScore", "k", "20", "40", "LIMIT", "5", "5") == MEMBERS[25:30]
    assert run(numbered, "ZRevRangeByScore", "k", "40", "20", "LIMIT", "5", "5") == list(
        reversed(MEMBERS[31:36])
    )
    with pytest.raises(CommandError, match="ERR syntax error"):
        run(numbered, "ZRangeByScore", "k", "20", "40", "LIMIT", "5")
    with pytest.raises(CommandError, match="ERR syntax error"):
        run(numbered, "ZRangeByScore", "k", "20", "40", "bogus")
    with pytest.raises(CommandError, match="min or max is not a float"):
        run(numbered, "ZRangeByScore", "k", "x", "40")


def test_zrem(numbered):
    assert run(numbered, "zrem", "k", *MEMBERS[0:10]) == 10
    assert run(numbered, "zcard", "k") == SIZE - 10
    assert run(numbered, "zrem", "nokey", "a") == 0


def test_zremrangebyrank(numbered):
    assert run(numbered, "ZRemRangeByRank", "k", "0", "9") == 10
    assert run(numbered, "zcard", "k") == SIZE - 10
    assert run(numbered, "ZRemRangeByRank", "k", "500", "600") == 0
    assert run(numbered, "ZRemRangeByRank", "nokey", "0", "1") == 0


def test_zremrangebyscore(numbered):
    assert run(numbered, "ZRemRangeByScore", "k", "0", "9") == 10
    assert run(numbered, "zcard", "k") == SIZE - 10
    assert cmd_zremrangebyscore(numbered, to_cmd_line("nokey", "0", "1")) == []


@pytest.mark.parametrize(
    "low,high,expected",
    [("20", "30", 11), ("-10", "10", 11), ("90", "110", 10), ("(20", "(30", 9)],
)
def test_zcount(numbered, low, high, expected):
    assert run(numbered, "zcount", "k", low, high) == expected


def test_zcount_missing_key(db):
    assert run(db, "zcount", "k", "0", "10") == 0


def test_zincrby(db):
    assert run(db, "ZIncrBy", "k", "10", "a") == b"10"
    assert run(db, "ZIncrBy", "k", "10", "a") == b"20"
    assert run(db, "ZScore", "k", "a") == b"20"
    with pytest.raises(CommandError, match="not a valid float"):
        run(db, "ZIncrBy", "k", "x", "a")


def test_zpopmin(db):
    run(db, "ZAdd", "k", "1", "a", "1", "b", "2", "c")
    assert run(db, "ZPopMin", "k", "2") == [b"a", b"1", b"b", b"1"]
    assert run(db, "ZRange", "k", "0", "-1") == [b"c"]
    assert run(db, "ZPopMin", "k1", "2") == []
    run(db, "set", "k2", "2")
    with pytest.raises(WrongTypeError) as info:
        run(db, "ZPopMin", "k2", "2")
    assert info.value.message == "WRONGTYPE Operation against a key holding the wrong kind of value"


@pytest.mark.parametrize(
    "low,high,expected",
    [
        ("(-", "(+", 0), ("(-", "(g", 5), ("(-", "(c", 2), ("(-", "[c", 3),
        ("(a", "(+", 0), ("[-", "[+", 0), ("[-", "(g", 5), ("[-", "(c", 2),
        ("[-", "[c", 3), ("(a", "[+", 0), ("-", "+", 5), ("-", "(c", 2),
        ("-", "[c", 3), ("(aa", "(c", 1), ("(aa", "[c", 2), ("[aa", "(c", 1),
        ("[aa", "[c", 2), ("(a", "(ee", 4), ("(a", "[ee", 4), ("[a", "(ee", 5),
        ("[a", "[ee", 5), ("(aa", "(ee", 4), ("(aa", "[ee", 4), ("[aa", "(ee", 4),
        ("[aa", "[ee", 4),
    ],
)
def test_zlexcount(lettered, low, high, expected):
    assert run(lettered, "ZLexCount", "k", low, high) == expected


@pytest.mark.parametrize(
    "extra,expected",
    [
        (("-", "+"), LETTERS),
        (("-", "(z"), LETTERS),
        (("(-", "[z"), LETTERS),
        (("[a", "[e"), LETTERS),
        (("(a", "[e"), LETTERS[1:]),
        (("[a", "(e"), LETTERS[:4]),
        (("(a", "(e"), LETTERS[1:4]),
        (("(aa", "(ee"), LETTERS[1:]),
        (("(aa", "[ee"), LETTERS[1:]),
        (("[aa", "(ee"), LETTERS[1:]),
        (("[aa", "[ee"), LETTERS[1:]),
        (("(aa", "(e"), LETTERS[1:4]),
        (("(aa", "[e"), LETTERS[1:]),
        (("[aa", "(e"), LETTERS[1:4]),
        (("[aa", "[e"), LETTERS[1:]),
        (("(a", "(ee"), LETTERS[1:]),
        (("(a", "[ee"), LETTERS[1:]),
        (("[a", "(ee"), LETTERS),
        (("[a", "[ee"), LETTERS),
        (("(-", "(+"), []),
        (("(a", "(+"), []),
        (("[-", "[+"), []),
        (("(z", "(g"), []),
        (("[-", "(g"), LETTERS),
        (("[-", "(c"), LETTERS[:2]),
        (("[-", "[c"), LETTERS[:3]),
        (("(a", "(e", "limit", "0", "-1"), [b"b", b"c", b"d"]),
        (("(a", "(e", "limit", "0", "1"), [b"b"]),
        (("(a", "(e", "limit", "-1", "1"), []),
        (("[a", "[e", "limit", "2", "100"), [b"c", b"d", b"e"]),
        (("-", "+", "limit", "2", "2"), [b"c", b"d"]),
    ],
)
def test_zrangebylex(lettered, extra, expected):
    assert run(lettered, "ZRangeByLex", "k", *extra) == expected


@pytest.mark.parametrize(
    "extra,expected",
    [
        (("+", "-"), [b"e", b"d", b"c", b"b", b"a"]),
        (("(z", "-"), [b"e", b"d", b"c", b"b", b"a"]),
        (("[z", "-"), [b"e", b"d", b"c", b"b", b"a"]),
        (("[e", "[a"), [b"e", b"d", b"c", b"b", b"a"]),
        (("[e", "(a"), [b"e", b"d", b"c", b"b"]),
        (("(e", "[a"), [b"d", b"c", b"b", b"a"]),
        (("(e", "(a"), [b"d", b"c", b"b"]),
        (("(ee", "(aa"), [b"e", b"d", b"c", b"b"]),
        (("[ee", "(aa"), [b"e", b"d", b"c", b"b"]),
        (("(ee", "[aa"), [b"e", b"d", b"c", b"b"]),
        (("[ee", "[aa"), [b"e", b"d", b"c", b"b"]),
        (("(e", "(aa"), [b"d", b"c", b"b"]),
        (("[e", "(aa"), [b"e", b"d", b"c", b"b"]),
        (("(e", "[aa"), [b"d", b"c", b"b"]),
        (("[e", "[aa"), [b"e", b"d", b"c", b"b"]),
        (("(ee", "(a"), [b"e", b"d", b"c", b"b"]),
        (("[ee", "(a"), [b"e", b"d", b"c", b"b"]),
        (("(ee", "[a"), [b"e", b"d", b"c", b"b", b"a"]),
        (("[ee", "[a"), [b"e", b"d", b"c", b"b", b"a"]),
        (("(+", "(-"), []),
        (("(+", "(a"), []),
        (("[+", "[-"), []),
        (("(g", "[-"), [b"e", b"d", b"c", b"b", b"a"]),
        (("(c", "[-"), [b"b", b"a"]),
        (("[c", "[-"), [b"c", b"b", b"a"]),
        (("(e", "(a", "limit", "0", "-1"), [b"d", b"c", b"b"]),
        (("(e", "(a", "limit", "0", "1"), [b"d"]),
        (("(e", "(a", "limit", "-1", "1"), []),
        (("[e", "[a", "limit", "2", "100"), [b"c", b"b", b"a"]),
        (("+", "-", "limit", "2", "2"), [b"c", b"b"]),
    ],
)
def test_zrevrangebylex(lettered, extra, expected):
    assert run(lettered, "ZRevRangeByLex", "k", *extra) == expected


def test_zrangebylex_errors(lettered):
    with pytest.raises(CommandError, match="ERR syntax error"):
        run(lettered, "ZRangeByLex", "k", "-", "+", "bogus", "0", "1")
    with pytest.raises(CommandError, match="wrong number of arguments for 'zrangebylex'"):
        run(lettered, "ZRangeByLex", "k", "-", "+", "limit", "0")
    with pytest.raises(CommandError, match="not valid string range item"):
        run(lettered, "ZRangeByLex", "k", "a", "+")
    assert cmd_zrangebylex(lettered, to_cmd_line("nokey", "-", "+")) == 0


def test_zremrangebylex(lettered):
    assert run(lettered, "ZRemRangeByLex", "k", "-", "+") == 5
    assert run(lettered, "ZRangeByLex", "k", "-", "+") == []

    run(lettered, "ZAdd", "k", "0", "e", "0", "d", "0", "c", "0", "b", "0", "a")
    assert run(lettered, "ZRemRangeByLex", "k", "-", "[c") == 3
    assert run(lettered, "ZRangeByLex", "k", "-", "+") == [b"d", b"e"]

    run(lettered, "ZAdd", "k", "0", "a", "0", "b", "0", "c")
    assert run(lettered, "ZRangeByLex", "k", "-", "+") == LETTERS
    assert run(lettered, "ZRemRangeByLex", "k", "(c", "+") == 2
    assert run(lettered, "ZRangeByLex", "k", "-", "+") == [b"a", b"b", b"c"]

    run(lettered, "ZAdd", "k", "0", "d", "0", "e")
    assert run(lettered, "ZRemRangeByLex", "k", "(a", "(d") == 2
    assert run(lettered, "ZRangeByLex", "k", "-", "+") == [b"a", b"d", b"e"]

    run(lettered, "ZAdd", "k", "0", "b", "0", "c")
    assert run(lettered, "ZRemRangeByLex", "k", "[a", "[d") == 4
    assert run(lettered, "ZRangeByLex", "k", "-", "+") == [b"e"]


def test_undo_zadd(db):
    run(db, "zadd", "k", "1", "a")
    lines = undo_zadd(db, to_cmd_line("k", "2", "a", "3", "b"))
    assert lines == [to_cmd_line("ZADD", "k", "1", "a"), to_cmd_line("ZREM", "k", "k", "b")[:1]
                     + to_cmd_line("k", "b")]
    run(db, "zadd", "k", "2", "a", "3", "b")
    for line in lines:
        db.exec(line)
    assert run(db, "zscore", "k", "a") == b"1"
    assert run(db, "zscore", "k", "b") is None


def test_undo_zadd_missing_key(db):
    assert undo_zadd(db, to_cmd_line("k", "1", "a")) == [to_cmd_line("DEL", "k")]


def test_undo_zrem_and_zincr(db):
    run(db, "zadd", "k", "1.5", "a")
    assert undo_zrem(db, to_cmd_line("k", "a")) == [to_cmd_line("ZADD", "k", "1.5", "a")]
    assert undo_zincr(db, to_cmd_line("k", "3", "z")) == [to_cmd_line("ZREM", "k", "z")]


def test_wrong_type(db):
    run(db, "set", "s", "v")
    with pytest.raises(WrongTypeError):
        run(db, "zadd", "s", "1", "a")
    with pytest.raises(WrongTypeError):
        run(db, "zcard", "s")