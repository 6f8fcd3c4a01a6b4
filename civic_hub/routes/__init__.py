"""FastAPI routers, mounted under /api (health at the root)."""
