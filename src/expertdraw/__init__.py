"""Fair random allocation of review experts to projects, with an
append-only audit trail of every draw and replacement."""

from expertdraw.errors import DrawError, DrawErrorKind
from expertdraw.service import ExpertDrawService, ServiceResult

__all__ = ["DrawError", "DrawErrorKind", "ExpertDrawService", "ServiceResult"]
