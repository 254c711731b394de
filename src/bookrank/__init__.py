"""Rule-based ranking and recommendation engine for a book catalog.

Two batch subsystems share the signal readers and the SQLite engine store:

- rankings: versioned, typed leaderboards refreshed per period window
- recommendations: per-user candidate fan-out, dedup and persisted result sets

The relatedness graph builder feeds similarity edges into recommendations.
"""

__version__ = "0.1.0"
