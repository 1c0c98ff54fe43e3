from fastapi import APIRouter, Depends

from app.core.metrics import service_metrics
from app.deps import require_admin
from app.models.admin_user import AdminUser

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get("/metrics")
def read_metrics(_user: AdminUser = Depends(require_admin)):
    """Per-route timings and claim outcome counters of this worker process."""
    return service_metrics.snapshot()
