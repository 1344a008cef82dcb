"""Shared type aliases used across the itinerary models."""
from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

NonNegMoney = Annotated[float, Field(ge=0)]
Lat = Annotated[float, Field(ge=-90, le=90)]
Lon = Annotated[float, Field(ge=-180, le=180)]
Confidence = Annotated[float, Field(ge=0, le=1)]
PositiveDays = Annotated[int, Field(ge=1)]

Priority = Literal["high", "normal", "low"]
DetailLevel = Literal["comprehensive", "balanced", "simplified"]
Pace = Literal["easy", "normal", "intense"]
Nightlife = Literal["none", "some", "heavy"]
