"""
                Délices Afro-Caraïbes Marketplace

Backend for a multi-role food-delivery marketplace: clients order from
restaurateurs, couriers deliver, admins supervise. FastAPI + async
SQLAlchemy, Socket.IO push, Celery background jobs, hybrid Mock/Real
provider architecture.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
