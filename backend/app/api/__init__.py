"""API route package — imports all routers for main.py."""

from app.api.health import router as health_router  # noqa: F401
from app.api.progress import router as progress_router  # noqa: F401
from app.api.progress_logs import router as progress_logs_router  # noqa: F401
from app.api.alerts import router as alerts_router  # noqa: F401
from app.api.preferences import router as preferences_router  # noqa: F401
