"""API routes for organizations and users."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session

from .schemas import BootstrapResponse, OrganizationBootstrap, OrganizationRead, UserCreate, UserRead, UserUpdate
from .service import OrganizationService, bootstrap_organization

router = APIRouter(prefix="/organizations", tags=["organizations"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> OrganizationService:
    return OrganizationService(session, ctx)


@router.post("", response_model=BootstrapResponse, status_code=status.HTTP_201_CREATED)
def create_organization(data: OrganizationBootstrap, session: Session = Depends(get_session)) -> BootstrapResponse:
    """Bootstrap a new organization and its owner."""
    org, owner = bootstrap_organization(session, data)
    return BootstrapResponse(
        organization=OrganizationRead.model_validate(org),
        owner=UserRead.model_validate(owner),
    )


@router.get("/current", response_model=OrganizationRead)
def get_current_organization(service: OrganizationService = Depends(get_service)) -> OrganizationRead:
    org = service.get_organization()
    if not org:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return OrganizationRead.model_validate(org)


@router.get("/current/me", response_model=UserRead)
def get_current_user(service: OrganizationService = Depends(get_service)) -> UserRead:
    return UserRead.model_validate(service.get_current_user())


@router.get("/current/users", response_model=list[UserRead])
def list_users(active_only: bool = False, service: OrganizationService = Depends(get_service)) -> list[UserRead]:
    return [UserRead.model_validate(u) for u in service.list_users(active_only=active_only)]


@router.post(
    "/current/users",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_user(data: UserCreate, service: OrganizationService = Depends(get_service)) -> UserRead:
    return UserRead.model_validate(service.create_user(data))


@router.patch("/current/users/{user_id}", response_model=UserRead, dependencies=[Depends(require_admin)])
def update_user(user_id: str, data: UserUpdate, service: OrganizationService = Depends(get_service)) -> UserRead:
    user = service.update_user(user_id, data)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User '{user_id}' not found")
    return UserRead.model_validate(user)
