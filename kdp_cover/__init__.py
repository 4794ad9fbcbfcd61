"""KDP full-wrap cover dimensions and assembly"""

__version__ = "0.1.0"
