"""
Boundary to whatever enumerates the connected devices.

The reconciler only needs a list of serial strings; ordering and uniqueness
are not required from the source.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class SerialSource(Protocol):
    """Anything that can report the serials of the devices currently attached."""

    def detect_serials(self) -> list[str]: ...


class StaticSerialSource:
    """Serials known ahead of time (command line, settings file, tests)."""

    def __init__(self, serials: Iterable[str] = ()) -> None:
        self._serials = [str(serial).strip() for serial in serials]

    def detect_serials(self) -> list[str]:
        logger.debug("Static serial source reporting %d serial(s)", len(self._serials))
        return list(self._serials)


__all__ = ["SerialSource", "StaticSerialSource"]
