"""bizdocs - multi-tenant business document API."""

__version__ = "1.0.0"
