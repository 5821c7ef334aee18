"""CityReport core: local-first persistence and staff session layer."""

__version__ = "1.0.0"
