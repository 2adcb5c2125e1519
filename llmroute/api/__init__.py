"""HTTP surface: FastAPI routers and request dependencies."""
