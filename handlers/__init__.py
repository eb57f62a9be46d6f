"""
Handlers package.

Routers are registered admin first: the admin router only accepts the admin
chat, the user router accepts everyone else.
"""

from . import admin, user

HANDLER_MODULES = [admin, user]


def register_all(dp):
    for module in HANDLER_MODULES:
        module.register(dp)


__all__ = ["admin", "user", "register_all"]
