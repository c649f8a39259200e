"""Back Office Queue CLI"""

__version__ = "1.0.0"
