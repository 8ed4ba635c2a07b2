"""gopackagesdriver package root."""

from gopackagesdriver.exceptions import DriverError

__all__ = ["__version__", "DriverError"]

__version__ = "0.1.0"
