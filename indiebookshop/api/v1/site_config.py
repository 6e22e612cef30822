"""
Client configuration endpoint.

Hands the public Mapbox token to the directory map. The token must be a
public (pk.*) token restricted to the site's domains in the Mapbox
dashboard; a secret token is logged as a misconfiguration.
"""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from indiebookshop.core.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["config"])

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


@router.get("/config")
def get_client_config() -> JSONResponse:
    token = get_settings().mapbox_access_token or ""
    if not token:
        logger.warning("MAPBOX_ACCESS_TOKEN is not set; the directory map will not load")
    elif not token.startswith("pk."):
        logger.warning("MAPBOX_ACCESS_TOKEN does not look like a public token (expected 'pk.')")

    return JSONResponse(content={"mapboxAccessToken": token}, headers=SECURITY_HEADERS)
