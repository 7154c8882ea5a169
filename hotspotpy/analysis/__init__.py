"""Hot spot analysis entry points."""

from hotspotpy.analysis.local_g import local_g_from_frame, local_g_statistics

__all__ = ["local_g_statistics", "local_g_from_frame"]
