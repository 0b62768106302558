"""
REST routers, one per marketplace concern.
"""

from marketplace.api import (
    ai,
    auth,
    categories,
    chat,
    deliveries,
    geo,
    loyalty,
    menu,
    notifications,
    orders,
    payments,
    restaurants,
    support,
    users,
)

ROUTERS = [
    auth.router,
    users.router,
    restaurants.router,
    categories.router,
    menu.router,
    support.router,
    orders.router,
    payments.router,
    deliveries.router,
    notifications.router,
    chat.router,
    geo.router,
    ai.router,
    loyalty.router,
]
