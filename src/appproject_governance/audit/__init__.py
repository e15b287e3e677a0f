"""Decision audit trail."""
from __future__ import annotations

from appproject_governance.audit.logger import DecisionAuditLogger

__all__ = ["DecisionAuditLogger"]
