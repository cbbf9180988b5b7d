from fastapi import APIRouter, Depends
from console_rbac.config.permissions_config import Permission
from console_rbac.core.dependencies import require_platform_admin, require_resource_permission
from console_rbac.core.outcomes import raise_for_outcome
from console_rbac.core.principal import AuthorizedRequest, Principal, ResourceType
from console_rbac.modules.access_control.routes import add_access_control_routes, get_access_control_service
from console_rbac.modules.access_control.schemas import ResourceCreate, ResourceResponse
from console_rbac.modules.access_control.service import AccessControlService
from console_rbac.modules.users.schemas import MessageResponse

router = APIRouter(prefix="/providers", tags=["providers"])


@router.post("", response_model=ResourceResponse, status_code=201)
async def create_provider(
    provider_data: ResourceCreate,
    principal: Principal = Depends(require_platform_admin),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Register a provider; only platform admins, who become its owner"""
    return raise_for_outcome(service.create_resource(
        principal, ResourceType.PROVIDER, provider_data.name, provider_data.description
    ))


@router.delete("/{provider_id}", response_model=MessageResponse)
async def delete_provider(
    provider_id: str,
    request: AuthorizedRequest = Depends(
        require_resource_permission(ResourceType.PROVIDER, "provider_id", Permission.PROVIDER_EDIT)
    ),
    service: AccessControlService = Depends(get_access_control_service)
):
    return raise_for_outcome(service.delete_resource(request))


add_access_control_routes(
    router,
    ResourceType.PROVIDER,
    "provider_id",
    list_permission=Permission.PROVIDER_ACCESS_CONTROL,
    manage_permission=Permission.PROVIDER_ACCESS_CONTROL,
)
