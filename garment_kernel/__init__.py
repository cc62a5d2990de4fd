"""
Garment ERP kernel.

Value objects, exceptions, structured logging, the injectable clock, the
database layer and the ORM models shared by the engines and services.
"""

__version__ = "0.1.0"
