"""FastAPI application and HTTP routers."""
