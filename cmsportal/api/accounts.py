"""Admin account management endpoints"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from cmsportal.api.deps import IdentityContext, get_authenticator, require_permission
from cmsportal.schemas.account import AccountCreate, AdminAccountPublic
from cmsportal.services.accounts import PasswordAuthenticator
from cmsportal.utils.logger import logger

router = APIRouter(prefix="/admin/accounts", tags=["accounts"])


@router.get("", response_model=List[AdminAccountPublic])
def list_accounts(
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
    _: IdentityContext = Depends(require_permission("accounts:manage")),
):
    """List local admin accounts, including deactivated ones"""
    return authenticator.list_accounts()


@router.post("", response_model=AdminAccountPublic, status_code=201)
def create_account(
    data: AccountCreate,
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
    ctx: IdentityContext = Depends(require_permission("accounts:manage")),
):
    """
    Create a local account (admin only).

    The password must meet the strength rules; the stored hash is never
    returned.
    """
    try:
        account = authenticator.create_account(data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(
        f"Account {account.id} created by {ctx.identity.subject}",
        extra={"user_id": ctx.identity.subject, "role": account.role},
    )
    return account


@router.delete("/{account_id}", status_code=204)
def deactivate_account(
    account_id: str,
    authenticator: PasswordAuthenticator = Depends(get_authenticator),
    ctx: IdentityContext = Depends(require_permission("accounts:manage")),
):
    """Deactivate an account (soft delete)"""
    if account_id == ctx.identity.subject:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account",
        )

    if not authenticator.deactivate_account(account_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account '{account_id}' not found",
        )
