"""Application package for the store back-office administration backend.

This package exposes the models, repositories, services and HTTP routers
used by the FastAPI application. Individual modules contain the concrete
implementations and documentation.
"""
