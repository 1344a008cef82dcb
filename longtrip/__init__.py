"""Long-trip itinerary generation: segmentation, chunked generation and POI extraction."""

__version__ = "0.1.0"
