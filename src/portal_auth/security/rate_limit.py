"""Per-IP request throttling for the HTTP surface.

This is a coarse outer guard against request floods. Account-level lockout
after failed logins is handled separately by the attempt limiter service.
"""

from collections.abc import Sequence
from ipaddress import ip_address, ip_network

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from portal_auth.config import get_settings


def _get_trusted_proxies() -> Sequence[str]:
    """Get list of trusted proxy IP ranges from configuration."""
    settings = get_settings()

    if settings.trusted_proxies_list:
        return settings.trusted_proxies_list

    # Default: trust localhost and common private ranges for development
    if settings.environment == "development":
        return ["127.0.0.1", "::1", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]

    # Outside development, proxies must be configured explicitly
    return []


def _is_trusted_proxy(client_ip: str, trusted_proxies: Sequence[str]) -> bool:
    """Check if client IP belongs to a trusted proxy.

    Args:
        client_ip: The IP address to check.
        trusted_proxies: Trusted IP addresses or CIDR ranges.

    Returns:
        True if the IP is trusted.
    """
    if not trusted_proxies:
        return False

    try:
        addr = ip_address(client_ip)
        return any(addr in ip_network(proxy, strict=False) for proxy in trusted_proxies)
    except ValueError:
        # Invalid IP format (e.g. the "testclient" host)
        return False


def get_real_client_ip(request: Request) -> str:
    """Extract the real client IP, honouring forwarding headers only from trusted proxies.

    Args:
        request: The incoming request object.

    Returns:
        The client IP address.
    """
    direct_ip = get_remote_address(request)

    if _is_trusted_proxy(direct_ip, _get_trusted_proxies()):
        forwarded_for = request.headers.get("X-Forwarded-For")
        candidates = [forwarded_for.split(",")[0].strip()] if forwarded_for else []
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            candidates.append(real_ip.strip())

        for candidate in candidates:
            try:
                ip_address(candidate)
            except ValueError:
                continue
            return candidate

    return direct_ip


def _get_storage_uri() -> str | None:
    """Get limiter storage URI: Redis database 1 when configured, else in-memory."""
    settings = get_settings()

    if settings.redis_url is None:
        # Production without Redis is rejected by Settings validation
        return None

    redis_url = str(settings.redis_url)
    if settings.redis_url.path and settings.redis_url.path != "/":
        # Database index already specified
        return redis_url
    return f"{redis_url.rstrip('/')}/1"


def _per_minute(count: int) -> str:
    return f"{count}/minute"


_settings = get_settings()

limiter = Limiter(
    key_func=get_real_client_ip,
    default_limits=[_per_minute(_settings.rate_limit_default)],
    storage_uri=_get_storage_uri(),
    enabled=_settings.rate_limit_enabled,
)

# Rate limit strings for the different endpoint types
API_DEFAULT_LIMIT = _per_minute(_settings.rate_limit_default)
AUTH_LOGIN_LIMIT = _per_minute(_settings.rate_limit_auth_login)
AUTH_SECOND_FACTOR_LIMIT = _per_minute(_settings.rate_limit_auth_second_factor)
AUTH_LOGOUT_LIMIT = _per_minute(_settings.rate_limit_auth_logout)
SENSITIVE_OPERATION_LIMIT = _per_minute(_settings.rate_limit_sensitive)
