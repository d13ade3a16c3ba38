from . import auth, discounts, families, fees, health, super_admin, users

__all__ = [
    "auth",
    "discounts",
    "families",
    "fees",
    "health",
    "super_admin",
    "users",
]
