from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..ad.errors import DirectoryError
from ..deps import MemberDirectory, get_directory

log = logging.getLogger(__name__)

READY_TIMEOUT_S = 2.0

router = APIRouter()


@router.get("/livez")
def livez():
    return {"status": "ok"}


@router.get("/readyz")
def readyz(directory: MemberDirectory = Depends(get_directory)):
    try:
        directory.check_health(time.monotonic() + READY_TIMEOUT_S)
    except DirectoryError as e:
        log.warning("readyz.ping_failed: %s", e)
        return JSONResponse({"status": "degraded"}, status_code=503)
    return {"status": "ready"}
