"""sCO2 Cycle: recompression Brayton cycle design and off-design analysis.

Also ships a wind-farm wake engine built on the same iteration style.
"""

__app_name__ = "sCO2 Cycle"
__version__ = "0.1.0"
