"""Replayable transcript of session operations.

A ``Logger`` writes one S-expression record per operation, in the order the
session applies them. A logger without a writer accepts every call and
writes nothing, so a session can log unconditionally.
"""

from __future__ import annotations

from typing import Optional, TextIO

from air.ast_nodes import Declaration, Query
from air.printer import decl_to_sexpr, query_to_sexpr

COMMENT = ";;"


class Logger:
    """Writes AIR (or SMT-LIB) records to an optional text stream."""

    def __init__(self, writer: Optional[TextIO] = None, owns_writer: bool = False):
        self.writer = writer
        self.owns_writer = owns_writer

    @classmethod
    def to_path(cls, path: str) -> Logger:
        return cls(open(path, "w", encoding="utf-8"), owns_writer=True)

    @property
    def enabled(self) -> bool:
        return self.writer is not None

    def write(self, text: str) -> None:
        if self.writer is None:
            return
        self.writer.write(text)
        self.writer.write("\n")
        self.writer.flush()

    def blank_line(self) -> None:
        self.write("")

    def comment(self, text: str) -> None:
        for line in text.splitlines() or [""]:
            self.write(f"{COMMENT} {line}".rstrip())

    def log_push(self) -> None:
        self.write("(push)")

    def log_pop(self) -> None:
        self.write("(pop)")

    def log_set_option(self, option: str, value: str) -> None:
        self.write(f"(set-option :{option} {value})")

    def log_decl(self, decl: Declaration) -> None:
        self.write(decl_to_sexpr(decl))

    def log_query(self, query: Query) -> None:
        self.write(query_to_sexpr(query))

    def close(self) -> None:
        if self.writer is not None and self.owns_writer:
            self.writer.close()
        self.writer = None
