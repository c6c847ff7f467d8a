"""
                Noodle Shop Ordering API

Backend for a counter-service restaurant: menu catalog management,
loyalty members keyed by phone number, and order placement with
server-side pricing, point settlement and status tracking.
"""

__version__ = "1.0.0"
