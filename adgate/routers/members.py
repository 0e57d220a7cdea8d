from __future__ import annotations

import logging
import time

import pydantic
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..deps import MemberDirectory, get_directory
from ..schemas import MemberCreate
from ..validate import ValidationError, sanitize_user

log = logging.getLogger(__name__)

LOOKUP_TIMEOUT_S = 10.0
CREATE_TIMEOUT_S = 15.0

router = APIRouter()


# Directory errors are not caught here: they propagate to the DirectoryError
# handler registered in create_app, which hides their detail.


@router.get("/v1/member")
def get_member(username: str = "", directory: MemberDirectory = Depends(get_directory)):
    if not username:
        return JSONResponse({"error": "missing username parameter"}, status_code=400)

    record = directory.lookup_principal(username, time.monotonic() + LOOKUP_TIMEOUT_S)
    return record.to_json()


@router.post("/v1/member")
async def create_member(request: Request, directory: MemberDirectory = Depends(get_directory)):
    try:
        payload = await request.json()
        body = MemberCreate.model_validate(payload)
    except (ValueError, pydantic.ValidationError) as e:
        log.info("create_member: rejected body: %s", type(e).__name__)
        return JSONResponse({"error": "invalid json"}, status_code=400)

    req = body.to_request()
    try:
        sanitize_user(req)
    except ValidationError as e:
        log.info("create_member: invalid input: %s", e)
        return JSONResponse({"error": f"invalid input: {e}"}, status_code=400)

    await run_in_threadpool(directory.provision_principal, req, time.monotonic() + CREATE_TIMEOUT_S)
    return JSONResponse({"status": "created"}, status_code=201)
