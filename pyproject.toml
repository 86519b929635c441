[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "rmstore"
version = "0.1.0"
description = "Page storage, buffer pool, catalogue metadata, write-ahead logging and recovery analysis for a small relational database engine"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "buffer-pool", "wal", "recovery", "lru", "catalog"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools]
packages = ["rmstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
