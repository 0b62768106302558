"""
                        Services Module

Business logic shared by the routers, the Socket.IO gateway and the
Celery worker. External providers follow the hybrid pattern: each has a
Mock (development) and a Real (production) implementation behind a
cached factory.

Services:
    - payment: Stripe card payments
    - geo: Google Maps geocoding and distances
    - notifications: Twilio SMS, SendGrid email, in-app inbox
    - ai: OpenAI assistant, recommendations, sentiment and fraud heuristics
    - lifecycle: status propagation between orders, payments and deliveries
    - earnings: courier payout computation
    - loyalty: points, tiers, rewards, subscriptions and referrals
    - chat, realtime: order chat storage and Socket.IO gateway
    - reports: finance workbook export
"""
