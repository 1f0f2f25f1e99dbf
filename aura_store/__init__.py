"""Bible Aura Local Store - Core application modules.

Provides:
- SQLite key/value substrate (SQLAlchemy) and an in-memory substrate
- Record store, sync status, quota, search and backup components
- LocalStore facade wiring them together
- JSON schemas in /specs (versioned contracts)
"""

__version__ = "0.1.0"
