"""Network configuration constants for the poll server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 3000
STORE_TIMEOUT_SECONDS: float = 5.0
