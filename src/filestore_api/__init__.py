"""
Files API for the categorized upload store.

Hosts the FastAPI application, its routers and schemas, and the local file
store core (``filestore_api.storage``).
"""
