"""Account directory API routes.

Domain errors (DirectoryError) propagate to the handler registered in
tutordesk.main, which answers with error_response() and the error's status.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.config import get_settings
from tutordesk.schemas.directory import (
    AccountResponse,
    BulkDeletePayload,
    BulkDeleteResponse,
    BulkStatusPayload,
    BulkStatusResponse,
    DirectoryPageResponse,
    ExportPayload,
)
from tutordesk.services import get_async_session
from tutordesk.services.bulk_service import BulkOperationService
from tutordesk.services.directory_service import DirectoryService
from tutordesk.services.directory_types import STATUS_ALL, SortDirection, SortField

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/directory", tags=["directory"])


def get_directory_service(session: AsyncSession = Depends(get_async_session)) -> DirectoryService:
    return DirectoryService(session, get_settings())


def get_bulk_service(session: AsyncSession = Depends(get_async_session)) -> BulkOperationService:
    return BulkOperationService(session, get_settings())


@router.get("/accounts", response_model=DirectoryPageResponse)
async def list_accounts(
    status_filter: str = Query(STATUS_ALL, alias="status"),
    search: str = "",
    sort: str = SortField.DISPLAY_NAME.value,
    direction: str = SortDirection.ASC.value,
    page: int = 1,
    page_size: int | None = None,
    service: DirectoryService = Depends(get_directory_service),
) -> DirectoryPageResponse:
    """
    One page of the account directory.

    Query params: status (all|lead|trial|active|paused|churned), search,
    sort, direction (asc|desc), page (1-based), page_size.

    Returns:
        200: DirectoryPageResponse
        422: Invalid filter, sort or page
        503/504: Store failure or timeout, with the failing stage
    """
    query = service.build_query(
        status=status_filter,
        search=search,
        sort_field=sort,
        sort_direction=direction,
        page=page,
        page_size=page_size,
    )
    result = await service.query(query)
    return DirectoryPageResponse.from_page(result)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: int,
    service: DirectoryService = Depends(get_directory_service),
) -> AccountResponse:
    """
    Single account with members and outstanding balance.

    Returns:
        200: AccountResponse
        404: Account not found
    """
    view = await service.get_account(account_id)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account {account_id} not found",
        )
    return AccountResponse.from_view(view)


@router.post("/accounts/bulk-status", response_model=BulkStatusResponse)
async def bulk_status(
    payload: BulkStatusPayload,
    response: Response,
    service: BulkOperationService = Depends(get_bulk_service),
) -> BulkStatusResponse:
    """
    Set the status of every listed account.

    Returns:
        200: All accounts updated
        207: Some accounts failed; see `failed`
        422: Unknown status
    """
    result = await service.bulk_update_status(payload.ids, payload.status, payload.actor_id)
    if result.failed:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return BulkStatusResponse.from_result(result)


@router.post("/accounts/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete(
    payload: BulkDeletePayload,
    service: BulkOperationService = Depends(get_bulk_service),
) -> BulkDeleteResponse:
    """
    Delete the listed accounts and their members.

    Returns:
        200: {deleted}
        409: Refused; `error.blocking` lists every account with dependents
    """
    result = await service.bulk_delete(payload.ids, payload.actor_id)
    return BulkDeleteResponse.from_result(result)


@router.post("/accounts/export")
async def export_accounts(
    payload: ExportPayload,
    service: BulkOperationService = Depends(get_bulk_service),
) -> Response:
    """
    CSV export of the listed accounts.

    Returns:
        200: text/csv attachment
        422: Unknown export field
    """
    content = await service.export_csv(payload.ids, payload.fields)
    filename = f"accounts-export-{date.today().isoformat()}.csv"
    logger.info("Serving %s (%d bytes)", filename, len(content))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
