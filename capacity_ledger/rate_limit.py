"""Rate limiting global / Global rate limiter.

Utilise slowapi pour limiter les requetes par IP.
Les routes qui écrivent dans le registre ont leur propre limite.
Routes that write to the ledger carry their own limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from capacity_ledger.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])
