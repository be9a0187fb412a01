"""
PartShare - fair distribution of kit parts among participants

Tracks a catalog of objects, kit types and part kinds, and distributes
units among participants using fairness policies that take the whole
history of past distributions into account.
"""

from partshare.app import PartShare

__version__ = "0.1.0"

__all__ = ["PartShare", "__version__"]
