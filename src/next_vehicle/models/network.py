"""Stop and line catalog models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LINE_COLOR: tuple[int, int, int] = (128, 128, 128)


class TransportKind(StrEnum):
    """Vehicle family serving a line."""

    TRAM = "tram"
    BUS = "bus"
    BRT = "brt"


class Stop(BaseModel):
    """A physical stop from the discovery catalog."""

    model_config = ConfigDict(frozen=True)

    stop_id: str
    name: str
    latitude: float
    longitude: float
    lines: frozenset[str] = Field(default_factory=frozenset)


class Line(BaseModel):
    """A transit line.

    ``destinations`` is the (outbound, inbound) pair of terminal names,
    indexed by GTFS ``direction_id`` 0 and 1.
    """

    model_config = ConfigDict(frozen=True)

    line_id: str
    line_ref: str
    code: str
    name: str
    color: tuple[int, int, int] = DEFAULT_LINE_COLOR
    kind: TransportKind = TransportKind.BUS
    destinations: tuple[str | None, str | None] = (None, None)

    def destination_for(self, direction_id: int | None) -> str | None:
        """Return the terminal name for a direction flag, if known."""
        if direction_id in (0, 1):
            return self.destinations[direction_id]
        return None

    @property
    def color_hex(self) -> str:
        r, g, b = self.color
        return f"{r:02X}{g:02X}{b:02X}"


class DiscoveryCatalog(BaseModel):
    """Payload of the metadata tier: one discovery refresh."""

    model_config = ConfigDict(frozen=True)

    stops: tuple[Stop, ...] = ()
    lines: tuple[Line, ...] = ()
