"""partree - PAR2 recovery data for directory trees.

Protect directories with erasure-coded recovery archives and later
verify or repair them against bit rot or accidental loss.
"""

__version__ = "0.1.0"
