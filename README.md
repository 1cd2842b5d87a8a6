# memkv

An in-memory key-value store engine. It keeps strings, bitmaps, sets and
sorted sets under string keys and runs commands given as lists of byte
arguments. Keys can carry an expiration time. Every key has a version that
write commands increase, which makes optimistic locking possible. Transactions
roll back through undo logs when one of their commands fails.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Usage

Commands run against a `memkv.db.Database`. You pass each command as a list of
bytes, and `memkv.db.to_cmd_line` builds one from strings or bytes. A command
group becomes available once its module has been imported:

- `memkv.db`: `DEL`, `PEXPIREAT`, `PERSIST`, `TYPE`
- `memkv.strings`: `GET`, `SET`, `GETEX`, `SETNX`, `SETEX`, `PSETEX`, `MSET`,
  `MGET`, `MSETNX`, `GETSET`, `GETDEL`, `INCR`, `INCRBY`, `INCRBYFLOAT`,
  `DECR`, `DECRBY`, `STRLEN`, `APPEND`, `SETRANGE`, `GETRANGE`, `RANDOMKEY`
- `memkv.bitops`: `SETBIT`, `GETBIT`, `BITCOUNT`, `BITPOS`
- `memkv.sets`: `SADD`, `SISMEMBER`, `SREM`, `SPOP`, `SCARD`, `SMEMBERS`,
  `SINTER`, `SINTERSTORE`, `SUNION`, `SUNIONSTORE`, `SDIFF`, `SDIFFSTORE`,
  `SRANDMEMBER`
- `memkv.sortedsets`: `ZADD`, `ZSCORE`, `ZINCRBY`, `ZRANK`, `ZREVRANK`,
  `ZCARD`, `ZCOUNT`, `ZRANGE`, `ZREVRANGE`, `ZRANGEBYSCORE`,
  `ZREVRANGEBYSCORE`, `ZPOPMIN`, `ZREM`, `ZREMRANGEBYSCORE`,
  `ZREMRANGEBYRANK`, `ZLEXCOUNT`, `ZRANGEBYLEX`, `ZREVRANGEBYLEX`,
  `ZREMRANGEBYLEX`
- `memkv.transaction`: `GETVER`

Command names are not case-sensitive.

```python
import memkv.strings, memkv.sets, memkv.sortedsets  # register the commands
from memkv.db import Database, to_cmd_line

db = Database()
db.exec(to_cmd_line("SET", "greeting", "hello", "EX", "100"))   # Status(text='OK')
db.exec(to_cmd_line("GET", "greeting"))                         # b'hello'
db.exec(to_cmd_line("INCR", "counter"))                         # 1

db.exec(to_cmd_line("SADD", "tags", "a", "b", "c"))             # 3
db.exec(to_cmd_line("SCARD", "tags"))                           # 3

db.exec(to_cmd_line("ZADD", "board", "10", "alice", "20", "bob"))
db.exec(to_cmd_line("ZRANGE", "board", "0", "-1", "WITHSCORES"))
# [b'alice', b'10', b'bob', b'20']
```

Each reply is a plain Python value:

- `bytes` for a value
- `None` for a missing value
- `int` for counts and integers
- `list` for multiple values
- `memkv.db.Status` for a status such as `OK`

Errors are raised as exceptions:

- `memkv.db.CommandError` carries the error text in `message`, for example
  `"ERR value is not an integer or out of range"`.
- `WrongTypeError` is a `CommandError` for a key that holds another type.
- `CommandSyntaxError` is a `CommandError` for malformed options.

Expired keys are removed lazily, when they are next accessed.
`Database.get_version` returns the version of a key.
`Database.get_undo_logs` returns the command lines that would undo a command.

`Database` takes an optional `aof` callable. It receives the command line of
every write that commands log, so that you can record them.

### Sorted sets

`memkv.zset.SortedSet` is the sorted-set structure on its own. It orders
members by score and then by member. It supports rank queries, score-border
queries and lex-border queries. `parse_score_border` and `parse_lex_border`
parse borders such as `"(5"`, `"-inf"`, `"[abc"` or `"+"`.

```python
from memkv.zset import SortedSet, parse_score_border

z = SortedSet()
z.add(b"a", 1.0)
z.add(b"b", 2.0)
z.get_rank(b"b", False)                                                  # 1
z.range_count(parse_score_border("(1"), parse_score_border("+inf"))     # 1
```

### Transactions

`memkv.transaction.handle` runs a command line for a `memkv.db.Connection`.
It handles `MULTI`, `EXEC`, `DISCARD` and `WATCH` itself. Between `MULTI` and
`EXEC` it queues commands and replies `QUEUED`.

`EXEC` returns the list of results. It returns an empty list if a watched key
changed. If a command fails, the commands that already ran are undone and
`EXECABORT` is raised.

```python
import memkv.strings
from memkv.db import Connection, Database, to_cmd_line
from memkv.transaction import handle

db, conn = Database(), Connection()
handle(db, conn, to_cmd_line("MULTI"))
handle(db, conn, to_cmd_line("SET", "k", "v"))    # Status(text='QUEUED')
handle(db, conn, to_cmd_line("EXEC"))             # [Status(text='OK')]
```

### Connection-level helpers

`memkv.system` provides the following functions. They are called directly
and are not routed through `handle`.

- `ping` replies `PONG`, or echoes a message.
- `auth` checks a password against a required one and stores it on the
  connection.
- `is_authenticated` tells whether a connection may run commands.
- `db_size` returns the number of keys.
- `keyspace_line` formats one keyspace statistics line.

```python
from memkv.db import Connection
from memkv.system import auth, is_authenticated

password = "password"
conn = Connection()
auth(conn, [password.encode()], password)         # Status(text='OK')
is_authenticated(conn, password)                  # True
```

## What the package does not do

memkv is an engine that you call from Python. It does not provide:

- a network server or a wire-protocol encoder;
- persistence to disk or loading of saved data;
- list or hash values;
- multiple numbered databases;
- an `INFO` command;
- commands such as `EXPIRE` or `TTL` (it has only `PEXPIREAT` and `PERSIST`).