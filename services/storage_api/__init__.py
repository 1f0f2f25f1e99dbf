"""Bible Aura Local Store - Storage API service.

Local FastAPI surface over the LocalStore facade: record CRUD, search,
storage stats, sync status and backup export/import.
"""

__all__: list[str] = []
