"""
API routes.

- sync: library, wishlist and playtime sync triggers plus per-user sync status
"""
