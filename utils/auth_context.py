from functools import wraps
from flask import g

from security.guard import authenticate_request


def current_account():
    return getattr(g, "account", None)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        authenticate_request()
        return fn(*args, **kwargs)
    return wrapper
