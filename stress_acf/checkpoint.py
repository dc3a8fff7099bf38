"""
Plain-text checkpoint records for correlator chains.

Each tier is written as nine lines, in fixed order::

    m
    p
    level_number
    start_at
    buffer values (most recent first, 0..p entries)
    correlation values (p entries)
    counter values (p entries)
    coarse_accumulator
    coarse_count

Tiers follow each other from the finest to the coarsest with no delimiter,
header or tier count. The reader detects the end of the chain by looking
ahead for one more well-formed value after each tier. Floats are written with
``repr`` so a write/read/write cycle reproduces the file byte for byte.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Sequence, Union

from .level import Level

LINES_PER_LEVEL = 9


class CheckpointError(RuntimeError):
    """Raised when a checkpoint cannot be restored."""
    pass


class CheckpointFormatError(CheckpointError, ValueError):
    """Raised when a checkpoint record cannot be parsed."""
    def __init__(self, message: str, line: int | None = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


def _format_float(x: float) -> str:
    return repr(float(x))


def _format_row(values, fmt) -> str:
    return " ".join(fmt(v) for v in values)


def serialize_level(level: Level) -> str:
    """Text record of a single tier, terminated by a newline."""
    lines = [
        str(level.m),
        str(level.p),
        str(level.level_number),
        str(level.start_at),
        _format_row(level.buffer, _format_float),
        _format_row(level.correlation, _format_float),
        _format_row(level.counter, lambda c: str(int(c))),
        _format_float(level.coarse_accumulator),
        str(level.coarse_count),
    ]
    return "\n".join(lines) + "\n"


def serialize(levels: Sequence[Level]) -> str:
    """Concatenated records of all tiers, finest first."""
    return "".join(serialize_level(level) for level in levels)


def _parse_int(token: str, lineno: int) -> int:
    try:
        return int(token)
    except ValueError:
        raise CheckpointFormatError(f"expected an integer, got {token!r}", lineno) from None


def _parse_float(token: str, lineno: int) -> float:
    try:
        return float(token)
    except ValueError:
        raise CheckpointFormatError(f"expected a number, got {token!r}", lineno) from None


def _scalar(lines: List[str], idx: int, parse):
    tokens = lines[idx].split()
    if len(tokens) != 1:
        raise CheckpointFormatError(f"expected a single value, got {len(tokens)}", idx + 1)
    return parse(tokens[0], idx + 1)


def _row(lines: List[str], idx: int, parse) -> list:
    return [parse(tok, idx + 1) for tok in lines[idx].split()]


def _has_next_level(lines: List[str], pos: int) -> bool:
    """Lookahead: does another tier start at ``pos``?"""
    for idx in range(pos, len(lines)):
        tokens = lines[idx].split()
        if not tokens:
            continue
        if idx != pos:
            raise CheckpointFormatError("unexpected blank line between tiers", pos + 1)
        try:
            int(tokens[0])
        except ValueError:
            raise CheckpointFormatError(f"trailing data {tokens[0]!r} after last tier", idx + 1) from None
        return True
    return False


def _parse_level(lines: List[str], pos: int) -> Level:
    if pos + LINES_PER_LEVEL > len(lines):
        raise CheckpointFormatError("truncated tier record", len(lines))
    m = _scalar(lines, pos, _parse_int)
    p = _scalar(lines, pos + 1, _parse_int)
    level_number = _scalar(lines, pos + 2, _parse_int)
    start_at = _scalar(lines, pos + 3, _parse_int)
    buffer = _row(lines, pos + 4, _parse_float)
    correlation = _row(lines, pos + 5, _parse_float)
    counter = _row(lines, pos + 6, _parse_int)
    coarse_accumulator = _scalar(lines, pos + 7, _parse_float)
    coarse_count = _scalar(lines, pos + 8, _parse_int)
    try:
        return Level.from_fields(
            m, p, level_number, start_at, buffer, correlation, counter,
            coarse_accumulator, coarse_count,
        )
    except ValueError as exc:
        raise CheckpointFormatError(str(exc), pos + 1) from exc


def deserialize(text: str) -> List[Level]:
    """Parse a chain record back into its tiers, finest first."""
    lines = text.splitlines()
    levels: List[Level] = []
    pos = 0
    while _has_next_level(lines, pos):
        level = _parse_level(lines, pos)
        if level.level_number != len(levels):
            raise CheckpointFormatError(
                f"tier {len(levels)} is labelled level_number={level.level_number}", pos + 3
            )
        levels.append(level)
        pos += LINES_PER_LEVEL
    if not levels:
        raise CheckpointFormatError("empty checkpoint record")
    return levels


def write(levels: Sequence[Level], path: Union[str, Path]) -> Path:
    """
    Write the chain record to ``path``.

    The record goes to a sibling ``.tmp`` file that then replaces ``path``,
    so an interrupted save leaves the previous checkpoint intact.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = serialize(levels)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except OSError:
        if tmp.exists():
            tmp.unlink()
        raise
    return path


def read(path: Union[str, Path]) -> List[Level]:
    """Read a chain record from ``path``. Missing or unreadable files raise CheckpointError."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise CheckpointError(f"Cannot read checkpoint {path}: {exc}") from exc
    try:
        return deserialize(text)
    except CheckpointFormatError as exc:
        raise CheckpointFormatError(f"{path}: {exc}") from exc
