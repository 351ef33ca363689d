"""Out-of-process code evaluation kernel"""

__version__ = "0.1.0"
