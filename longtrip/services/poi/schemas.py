from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from longtrip.core.schemas import Activity, Destination


class POIExtractionInput(BaseModel):
    """Input for the POI extraction tool."""

    activities: List[Activity] = Field(
        default_factory=list, description="Itinerary activities to scan for named places"
    )
    destination: Destination = Field(description="Trip destination used for city and country")
