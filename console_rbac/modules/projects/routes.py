from fastapi import APIRouter, Depends
from console_rbac.config.permissions_config import Permission
from console_rbac.core.dependencies import require_permission, require_resource_permission
from console_rbac.core.outcomes import raise_for_outcome
from console_rbac.core.principal import AuthorizedRequest, ResourceType
from console_rbac.modules.access_control.routes import add_access_control_routes, get_access_control_service
from console_rbac.modules.access_control.schemas import ResourceCreate, ResourceResponse
from console_rbac.modules.access_control.service import AccessControlService
from console_rbac.modules.users.schemas import MessageResponse

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ResourceResponse, status_code=201)
async def create_project(
    project_data: ResourceCreate,
    request: AuthorizedRequest = Depends(require_permission(Permission.PROJECT_CREATE)),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Create a project owned by the caller"""
    return raise_for_outcome(service.create_resource(
        request.principal, ResourceType.PROJECT, project_data.name, project_data.description
    ))


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: str,
    request: AuthorizedRequest = Depends(
        require_resource_permission(ResourceType.PROJECT, "project_id", Permission.PROJECT_DELETE)
    ),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Delete a project and every ACL on it"""
    return raise_for_outcome(service.delete_resource(request))


add_access_control_routes(
    router,
    ResourceType.PROJECT,
    "project_id",
    list_permission=Permission.PROJECT_READ,
    manage_permission=Permission.PROJECT_ACCESS_CONTROL,
)
