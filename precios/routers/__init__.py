"""Routers FastAPI. Se registran en precios.main bajo el prefijo /api."""
