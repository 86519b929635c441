"""Catalogue metadata for databases, tables, columns and indexes."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import IntEnum


class MetaError(Exception):
    """A catalogue lookup failed."""


class TableNotFoundError(MetaError):
    def __init__(self, tab_name: str) -> None:
        super().__init__(f"Table not found: {tab_name}")
        self.tab_name = tab_name


class ColumnNotFoundError(MetaError):
    def __init__(self, col_name: str) -> None:
        super().__init__(f"Column not found: {col_name}")
        self.col_name = col_name


class IndexNotFoundError(MetaError):
    def __init__(self, tab_name: str, col_names: Sequence[str]) -> None:
        super().__init__(f"Index not found: {tab_name}.({', '.join(col_names)})")
        self.tab_name = tab_name
        self.col_names = list(col_names)


class ColType(IntEnum):
    TYPE_INT = 0
    TYPE_FLOAT = 1
    TYPE_STRING = 2


def _names(cols: Iterable[str | ColMeta]) -> list[str]:
    return [c.name if isinstance(c, ColMeta) else c for c in cols]


@dataclass
class ColMeta:
    """A column: its table, name, type, byte length and offset within a record."""

    tab_name: str
    name: str
    type: ColType
    len: int
    offset: int
    index: bool = False

    def to_text(self) -> str:
        return (
            f"{self.tab_name} {self.name} {int(self.type)} {self.len} "
            f"{self.offset} {int(self.index)}"
        )

    @classmethod
    def read(cls, tokens: Iterator[str]) -> ColMeta:
        """Read one column from a stream of whitespace-separated tokens."""
        return cls(
            tab_name=next(tokens),
            name=next(tokens),
            type=ColType(int(next(tokens))),
            len=int(next(tokens)),
            offset=int(next(tokens)),
            index=bool(int(next(tokens))),
        )


@dataclass
class IndexMeta:
    """An index over one or more columns of a table."""

    tab_name: str
    col_tot_len: int
    col_num: int
    cols: list[ColMeta] = field(default_factory=list)

    def to_text(self) -> str:
        head = f"{self.tab_name} {self.col_tot_len} {self.col_num}"
        return "".join([head, *("\n" + col.to_text() for col in self.cols)])

    @classmethod
    def read(cls, tokens: Iterator[str]) -> IndexMeta:
        tab_name = next(tokens)
        col_tot_len = int(next(tokens))
        col_num = int(next(tokens))
        cols = [ColMeta.read(tokens) for _ in range(col_num)]
        return cls(tab_name, col_tot_len, col_num, cols)

    def matches(self, col_names: Sequence[str | ColMeta]) -> bool:
        names = _names(col_names)
        return self.col_num == len(names) and [c.name for c in self.cols[: self.col_num]] == names


@dataclass
class TabMeta:
    """A table: its columns and the indexes built on it."""

    name: str = ""
    cols: list[ColMeta] = field(default_factory=list)
    indexes: list[IndexMeta] = field(default_factory=list)

    def is_col(self, col_name: str) -> bool:
        return any(col.name == col_name for col in self.cols)

    def is_index(self, col_names: Sequence[str | ColMeta]) -> bool:
        """Whether an index exists over exactly these columns, in this order."""
        return any(index.matches(col_names) for index in self.indexes)

    def get_index_meta(self, col_names: Sequence[str | ColMeta]) -> IndexMeta:
        for index in self.indexes:
            if index.matches(col_names):
                return index
        raise IndexNotFoundError(self.name, _names(col_names))

    def get_col(self, col_name: str) -> ColMeta:
        for col in self.cols:
            if col.name == col_name:
                return col
        raise ColumnNotFoundError(col_name)

    def to_text(self) -> str:
        lines = [self.name, str(len(self.cols))]
        lines += [col.to_text() for col in self.cols]
        lines.append(str(len(self.indexes)))
        lines += [index.to_text() for index in self.indexes]
        return "\n".join(lines) + "\n"

    @classmethod
    def read(cls, tokens: Iterator[str]) -> TabMeta:
        name = next(tokens)
        cols = [ColMeta.read(tokens) for _ in range(int(next(tokens)))]
        indexes = [IndexMeta.read(tokens) for _ in range(int(next(tokens)))]
        return cls(name, cols, indexes)


@dataclass
class DbMeta:
    """A database: its name and its tables by name."""

    name: str = ""
    tabs: dict[str, TabMeta] = field(default_factory=dict)

    def is_table(self, tab_name: str) -> bool:
        return tab_name in self.tabs

    def set_table(self, tab_name: str, meta: TabMeta) -> None:
        self.tabs[tab_name] = meta

    def get_table(self, tab_name: str) -> TabMeta:
        try:
            return self.tabs[tab_name]
        except KeyError:
            raise TableNotFoundError(tab_name) from None

    def dumps(self) -> str:
        """The catalogue as text, tables in name order."""
        parts = [f"{self.name}\n{len(self.tabs)}\n"]
        parts += [self.tabs[name].to_text() + "\n" for name in sorted(self.tabs)]
        return "".join(parts)

    @classmethod
    def loads(cls, text: str) -> DbMeta:
        tokens = iter(text.split())
        name = next(tokens)
        db = cls(name)
        for _ in range(int(next(tokens))):
            tab = TabMeta.read(tokens)
            db.tabs[tab.name] = tab
        return db