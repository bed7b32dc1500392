from finadmin.db.base import Base
from .admin_user import AdminUser
from .otp_challenge import AdminOtpChallenge
from .backup_job import AdminBackupJob
from .audit_log import AuditLog

__all__ = [
    "Base",
    "AdminUser",
    "AdminOtpChallenge",
    "AdminBackupJob",
    "AuditLog",
]
