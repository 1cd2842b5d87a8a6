[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memkv"
version = "0.1.0"
description = "An in-memory key-value store engine with strings, bitmaps, sets, sorted sets and transactions"
requires-python = ">=3.10"
dependencies = [
    "sortedcontainers",
]
keywords = ["key-value", "in-memory", "database", "sorted-set", "transactions"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["memkv"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
