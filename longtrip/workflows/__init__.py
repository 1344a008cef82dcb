from longtrip.workflows.long_trip import LongTripHandler, create_long_trip_handler

__all__ = ["LongTripHandler", "create_long_trip_handler"]
