"""
Order Service — Domain errors
"""


class OrderError(Exception):
    pass


class InvalidFactError(OrderError):
    """A stream entry that can never become an order (poison message)."""
