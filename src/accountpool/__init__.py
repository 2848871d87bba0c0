"""AccountPool: round-robin account router for AI provider CLIs."""

__version__ = "0.1.0"

from accountpool.config import ConfigLoader
from accountpool.routing.router import AccountRouter

__all__ = ["AccountRouter", "ConfigLoader", "__version__"]
