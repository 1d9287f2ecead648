"""Abstract print directives, independent of any printer family."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

ALIGNMENTS = ("left", "center", "right")
CUT_MODES = ("full", "partial")


@dataclass(frozen=True)
class Initialize:
    command = "initialize"


@dataclass(frozen=True)
class SetAlignment:
    align: str = "left"
    command = "align"

    def __post_init__(self) -> None:
        if self.align not in ALIGNMENTS:
            raise ValueError(f"align must be one of {ALIGNMENTS}, got {self.align!r}")

    @property
    def argument(self) -> str:
        return self.align


@dataclass(frozen=True)
class SetBold:
    on: bool = True
    command = "bold"

    @property
    def argument(self) -> bool:
        return self.on


@dataclass(frozen=True)
class Text:
    """One printed line; the dialect appends its line terminator."""

    value: str = ""
    command = "text"


@dataclass(frozen=True)
class FeedLines:
    count: int = 1
    command = "feed"

    def __post_init__(self) -> None:
        if not (0 <= self.count <= 255):
            raise ValueError("FeedLines count must be between 0 and 255")


@dataclass(frozen=True)
class Cut:
    mode: str = "partial"
    command = "cut"

    def __post_init__(self) -> None:
        if self.mode not in CUT_MODES:
            raise ValueError(f"cut mode must be one of {CUT_MODES}, got {self.mode!r}")

    @property
    def argument(self) -> str:
        return self.mode


Directive = Union[Initialize, SetAlignment, SetBold, Text, FeedLines, Cut]
