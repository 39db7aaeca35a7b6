"""
Logging Context - Tenant-Aware Log Records

Stamps the active tenant context (tenant_id, team_id, project_id) onto every
log record so that per-scope warnings during a search fan-out can be told
apart. The values come from the same ContextVar stores read for payload
isolation, so they are task-local.
"""

import logging
from typing import Optional

from remediation_store.tools.vector_store import current_tenant

DEFAULT_LOG_FORMAT = (
    '[%(asctime)s] %(levelname)-8s '
    '[tenant_id=%(tenant_id)s] '
    '[team_id=%(team_id)s] '
    '[project_id=%(project_id)s] '
    '%(name)s: %(message)s'
)


class TenantContextFilter(logging.Filter):
    """Filter that adds the tenant context to log records.

    Adds to the LogRecord:
    - tenant_id
    - team_id
    - project_id

    Fields without a value are set to 'N/A'.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        tenant = current_tenant()
        record.tenant_id = (tenant.tenant_id if tenant else "") or "N/A"
        record.team_id = (tenant.team_id if tenant else "") or "N/A"
        record.project_id = (tenant.project_id if tenant else "") or "N/A"
        return True


def configure_logging(level: str = "INFO", log_format: Optional[str] = None) -> logging.Handler:
    """Install a stream handler with TenantContextFilter on the package logger.

    Args:
        level: Log level name.
        log_format: Custom format (DEFAULT_LOG_FORMAT if not given).

    Returns:
        The installed handler.
    """
    package_logger = logging.getLogger("remediation_store")

    for handler in package_logger.handlers[:]:
        if any(isinstance(f, TenantContextFilter) for f in handler.filters):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(log_format or DEFAULT_LOG_FORMAT))
    handler.addFilter(TenantContextFilter())

    package_logger.addHandler(handler)
    package_logger.setLevel(level.upper())
    return handler
