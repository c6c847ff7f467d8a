"""
Domain exceptions raised by the store and service layers.

The API layer maps each subclass onto an HTTP status code, so services
never import FastAPI.
"""


class RestaurantError(Exception):
    """Base class for all business errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidMenuItem(RestaurantError):
    status_code = 400


class InvalidOrder(RestaurantError):
    status_code = 400


class InvalidUpload(RestaurantError):
    status_code = 400


class MenuItemNotFound(RestaurantError):
    status_code = 404

    def __init__(self, item_id: int):
        super().__init__(f"Menu item #{item_id} not found")
        self.item_id = item_id


class MemberNotFound(RestaurantError):
    status_code = 404

    def __init__(self, phone: str):
        super().__init__(f"Member {phone} not found")
        self.phone = phone


class MemberAlreadyExists(RestaurantError):
    status_code = 409

    def __init__(self, phone: str):
        super().__init__(f"Member {phone} is already enrolled")
        self.phone = phone


class OrderNotFound(RestaurantError):
    status_code = 404

    def __init__(self, order_id: int):
        super().__init__(f"Order #{order_id} not found")
        self.order_id = order_id
