"""PocketLedger personal finance tracker.

The ``backend`` package serves the JSON API on top of a pluggable record
store, the ``frontend`` package holds the API client and the optimistic
client-side cache. ``models`` and ``insights`` are shared by both.
"""

__version__ = "0.3.0"
