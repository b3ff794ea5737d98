"""Todo API backend - session credentials and request throttling"""

__version__ = "1.0.0"
