"""slowapi limiter shared by the routers; attached to the app in main.py."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from backoffice.config import settings

LOGIN_RATE_LIMIT = "10/minute"
PRESIGN_RATE_LIMIT = "30/minute"
EXPORT_RATE_LIMIT = "20/minute"
PUBLIC_LOOKUP_RATE_LIMIT = "30/minute"


def client_key(request: Request) -> str:
    """Address the limits are counted against.

    ``X-Forwarded-For`` is only read when the peer is a configured trusted
    proxy. Hops are walked right to left and the first address that is not
    itself a trusted proxy is the client.
    """
    peer = get_remote_address(request)
    trusted = settings.trusted_proxy_list
    if peer not in trusted:
        return peer
    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


limiter = Limiter(key_func=client_key, default_limits=["60/minute"])
