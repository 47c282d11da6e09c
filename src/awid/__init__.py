"""AWID distributed coordination layer.

Cache-aside caching, distributed locks, fixed-window rate limiting and live
notification fan-out over one shared Redis instance.
"""

__version__ = "0.1.0"
