from fastapi import Request
from utils.logger_factory import new_logger


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request headers, preferring proxy-forwarded values."""
    log = new_logger("get_client_ip")

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP if there are multiple
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            log.debug(f"Using X-Forwarded-For IP: {client_ip}")
            return client_ip

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        log.debug(f"Using X-Real-IP: {real_ip.strip()}")
        return real_ip.strip()

    fallback_ip = request.client.host if request.client else "unknown"
    log.debug(f"Using fallback IP: {fallback_ip}")
    return fallback_ip
