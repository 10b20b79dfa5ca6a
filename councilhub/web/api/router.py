from fastapi.routing import APIRouter

from councilhub.auth.endpoints import router as auth_router
from councilhub.configuration import endpoints as site_settings
from councilhub.directory import endpoints as directory
from councilhub.events import endpoints as events
from councilhub.integrations import endpoints as integrations
from councilhub.members import endpoints as members
from councilhub.web.api import monitoring

api_router = APIRouter()
api_router.include_router(monitoring.router)
api_router.include_router(auth_router, tags=["authentication"])
api_router.include_router(members.router, prefix="/users", tags=["users"])
api_router.include_router(members.admin_router, prefix="/admin", tags=["users"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(events.tasks_router, prefix="/tasks", tags=["tasks"])
api_router.include_router(directory.router, prefix="/contacts", tags=["directory"])
api_router.include_router(site_settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(integrations.router, prefix="/integrations", tags=["integrations"])
