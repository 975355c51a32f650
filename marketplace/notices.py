"""User-facing notices raised by the page controllers.

A notice is what the web client showed as a toast. Controllers take a
``notify`` callable so a CLI can print them and tests can collect them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT = "default"
DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str = ""
    variant: str = DEFAULT

    @property
    def is_error(self) -> bool:
        return self.variant == DESTRUCTIVE


Notifier = Callable[[Notice], None]


def log_notice(notice: Notice) -> None:
    level = "warning" if notice.is_error else "info"
    getattr(logger, level)("notice", extra={"title": notice.title, "description": notice.description})


def error_notice(description: str, title: str = "Error") -> Notice:
    return Notice(title=title, description=description, variant=DESTRUCTIVE)


class NoticeCollector:
    """Notifier that keeps every notice; handy for tests and batch callers."""

    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def titles(self) -> List[str]:
        return [n.title for n in self.notices]

    def last(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None
