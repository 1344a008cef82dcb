from typing import Any, Dict, List

from langchain_core.tools import StructuredTool

from longtrip.services.poi.extractor import POIExtractor
from longtrip.services.poi.schemas import POIExtractionInput


def create_poi_extraction_tool(extractor: POIExtractor) -> StructuredTool:
    """Wrap ``POIExtractor`` as a LangChain tool.

    Args:
        extractor: The extractor whose pattern tables the tool should use

    Returns:
        StructuredTool: Tool named ``extract_pois_tool`` returning POI dicts
    """

    def extract(**kwargs) -> List[Dict[str, Any]]:
        """Extract named places from itinerary activities."""

        payload = POIExtractionInput(**kwargs)
        pois = extractor.extract_pois_from_itinerary(payload.activities, payload.destination)
        return [poi.model_dump(mode="json") for poi in pois]

    return StructuredTool.from_function(
        func=extract,
        name="extract_pois_tool",
        description=(
            "Extract deduplicated points of interest (temples, museums, markets, parks...) "
            "from itinerary activities. Input: activities (list of activity objects with "
            "title, description, optional location and category) and destination "
            "(destination/city/country)."
        ),
        args_schema=POIExtractionInput,
    )
