import os

from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str):
    value = os.getenv(name)
    return int(value) if value else None


HOTEL_SERVICE_URL = os.getenv("HOTEL_SERVICE_URL", "http://localhost:8081/api")
FLIGHT_SERVICE_URL = os.getenv("FLIGHT_SERVICE_URL", "http://localhost:8082/api")

# When set, remote legs are booked under the agency's own account at that service.
HOTEL_AGENT_CUSTOMER_ID = _optional_int("HOTEL_AGENT_CUSTOMER_ID")
FLIGHT_AGENT_CUSTOMER_ID = _optional_int("FLIGHT_AGENT_CUSTOMER_ID")

REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
