from flask import request, current_app


def client_ip() -> str:
    if current_app.config.get("TRUST_PROXY_HEADERS", False):
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.remote_addr or "unknown"


def user_agent() -> str:
    return (request.headers.get("User-Agent") or "")[:255]
