"""Rate limiter singleton — import from here to avoid circular deps.

Keyed on the socket peer. Behind a reverse proxy the server resolves the
real client from X-Forwarded-For, trusting only FORWARDED_ALLOW_IPS
(see gunicorn.conf.py), so request headers alone cannot move the key.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
