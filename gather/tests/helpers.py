"""Shared constants for the test suite."""

from datetime import datetime, timedelta, timezone

from gather.models.location import Coordinate

TEST_SECRET = "test-secret"

# Fixed clock for service-level tests
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(hours=1)

# Two points about 1.1 km apart in Lisbon, one in Porto (~275 km away)
LISBON = Coordinate(latitude=38.7223, longitude=-9.1393)
LISBON_NEARBY = Coordinate(latitude=38.7323, longitude=-9.1393)
PORTO = Coordinate(latitude=41.1579, longitude=-8.6291)
