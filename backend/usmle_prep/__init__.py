# backend/usmle_prep/__init__.py
"""USMLE prep quiz API."""
