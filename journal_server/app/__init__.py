"""FastAPI application assembly: factory and lifespan."""
