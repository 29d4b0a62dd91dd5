"""
GET /status
Reports whether credentials are configured and the tracker is reachable.
"""
import logging

from fastapi import APIRouter

from bug_analyzer.api.dependencies import HANDLED_ERRORS, make_jira_client
from bug_analyzer.core.config import ANALYSIS_MODEL, missing_credentials

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status")
async def get_status():
    missing = missing_credentials()
    if missing:
        return {"configured": False, "missing": missing, "jira": "unconfigured", "model": ANALYSIS_MODEL}

    client = make_jira_client()
    try:
        await client.test_connection()
        jira = "connected"
    except HANDLED_ERRORS as exc:
        logger.warning("Jira connection check failed: %s", exc)
        jira = f"error: {exc}"
    finally:
        await client.close()
    return {"configured": True, "missing": [], "jira": jira, "model": ANALYSIS_MODEL}
