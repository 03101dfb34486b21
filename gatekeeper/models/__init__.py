from gatekeeper.models.audit import AuditRecord
from gatekeeper.models.document import Document

__all__ = ["AuditRecord", "Document"]
