"""Webflow CMS proxy endpoints. The caller's Authorization header is forwarded."""

import base64
import binascii
from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from api.webflow_client import WebflowClient
from models.errors import ValidationError
from server.dependencies import get_authorization, get_webflow_client
from server.schemas.requests import AssetUploadRequest

router = APIRouter(prefix="/api/webflow", tags=["Webflow"])


@router.get("")
async def list_items(
    collection_id: str = Query("", alias="collectionId"),
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    authorization: str = Depends(get_authorization),
    client: WebflowClient = Depends(get_webflow_client),
):
    return await client.list_items(collection_id, authorization, offset=offset, limit=limit)


@router.get("/all")
async def list_all_items(
    collection_id: str = Query("", alias="collectionId"),
    authorization: str = Depends(get_authorization),
    client: WebflowClient = Depends(get_webflow_client),
):
    """Every item of the collection, deduplicated and cached."""
    return await client.list_all_items(collection_id, authorization)


@router.get("/item")
async def get_item(
    collection_id: str = Query("", alias="collectionId"),
    item_id: str = Query("", alias="itemId"),
    authorization: str = Depends(get_authorization),
    client: WebflowClient = Depends(get_webflow_client),
):
    return await client.get_item(collection_id, item_id, authorization)


@router.patch("")
async def patch_item(
    collection_id: str = Query("", alias="collectionId"),
    item_id: str = Query("", alias="itemId"),
    body: dict[str, Any] = Body(...),
    authorization: str = Depends(get_authorization),
    client: WebflowClient = Depends(get_webflow_client),
):
    return await client.patch_item(collection_id, item_id, authorization, body)


@router.post("/assets")
async def upload_asset(
    body: AssetUploadRequest,
    authorization: str = Depends(get_authorization),
    client: WebflowClient = Depends(get_webflow_client),
):
    try:
        content = base64.b64decode(body.data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("data", "file data must be base64 encoded") from None
    return await client.upload_asset(
        body.site_id, authorization, body.file_name, content, body.content_type
    )
