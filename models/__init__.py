from .db import db
from .account import Account, Role
from .staff import StaffProfile
from .audit_log import AuditLog
from .rate_limit_counter import RateLimitCounter
from .revoked_token import RevokedToken
