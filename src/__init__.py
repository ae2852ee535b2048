"""Top-level package for the marketplace.

Checkout settlement lives in :mod:`checkout`, order status handling in
:mod:`order_lifecycle`, storage in :mod:`dao` and the role-checked facade
used by the console in :mod:`marketplace_app`.
"""
