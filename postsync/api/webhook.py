"""GitHub webhook endpoint: imports pushed commits into local posts."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from postsync.api.deps import get_object_store, get_session, get_settings
from postsync.config import Settings
from postsync.schemas.webhook import ImportResponse, PushPayload
from postsync.services.github_client import ObjectStore
from postsync.services.import_service import ImportOutcome, ImportService
from postsync.services.sync_state import load_sync_state, save_sync_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhook"])

_MAX_PAYLOAD_SIZE = 25 * 1024 * 1024


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check a ``sha256=<hex>`` HMAC signature of the raw request body."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.removeprefix("sha256="))


@router.post("", response_model=ImportResponse)
async def github_webhook(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    x_github_event: Annotated[str | None, Header()] = None,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
) -> ImportResponse:
    """Handle a GitHub push event."""
    body = await request.body()
    if len(body) > _MAX_PAYLOAD_SIZE:
        raise HTTPException(status_code=413, detail="Payload too large")

    if settings.webhook_secret and not verify_signature(
        settings.webhook_secret, body, x_hub_signature_256
    ):
        logger.warning("Rejected webhook with missing or invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    if x_github_event == "ping":
        return ImportResponse(status="pong")
    if x_github_event not in (None, "push"):
        return ImportResponse(status="ignored", message=f"Unhandled event {x_github_event}")

    try:
        payload = PushPayload.model_validate_json(body)
    except ValidationError as exc:
        logger.warning("Invalid push payload: %s", exc.error_count())
        raise HTTPException(status_code=422, detail="Invalid push payload") from exc

    service = ImportService(session, store, settings)
    result = await service.handle_push(payload, await load_sync_state(session))
    if result.outcome in (ImportOutcome.IMPORTED, ImportOutcome.ERROR):
        await save_sync_state(session, result.state)
    if result.outcome == ImportOutcome.ERROR:
        response.status_code = 502

    return ImportResponse(
        status=str(result.outcome),
        message=result.message,
        imported=result.imported,
        deleted=result.deleted,
    )
