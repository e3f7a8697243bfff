"""Hierarchical collection keys shared by persistence and live feeds."""


def feature_requests_path(app_id: str) -> str:
    return f"artifacts/{app_id}/feature-requests"


def user_wishlist_path(app_id: str, user_id: str) -> str:
    return f"artifacts/{app_id}/users/{user_id}/wishlist"


def public_wishlist_path(app_id: str) -> str:
    return f"artifacts/{app_id}/public/data/wishlists"
