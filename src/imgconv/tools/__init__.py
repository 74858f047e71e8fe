"""External tool discovery for imgconv."""

from imgconv.tools.availability import ToolAvailability, ToolProber, clear_probe_cache, probe

__all__ = ["ToolAvailability", "ToolProber", "probe", "clear_probe_cache"]
