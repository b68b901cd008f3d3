# spiral_app/client.py

"""Thin HTTP helper used by the Streamlit companion to talk to the API."""

import json
import logging
from typing import Any, Dict, Optional

import requests

from spiral_app.config.settings import settings

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

REQUEST_TIMEOUT = 60


def _detail(response: requests.Response, fallback: str) -> Any:
    try:
        return response.json().get("detail", fallback)
    except (json.JSONDecodeError, ValueError, AttributeError):
        return fallback


def _detail_message(detail: Any) -> str:
    if isinstance(detail, dict):
        return detail.get("message") or str(detail)
    return str(detail)


def call_spiral_api(
    method: str,
    path: str,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    base_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Sends one request to the SpiralEngine API.

    Returns the decoded JSON body on success. Any failure comes back as a
    dict with an ``error`` message; validation failures also carry the
    per-field ``errors``.
    """
    url = "%s%s" % ((base_url or settings.api_base_url).rstrip("/"), path)
    try:
        response = requests.request(method, url, json=payload, params=params, timeout=REQUEST_TIMEOUT)
        if response.status_code == 400:
            detail = _detail(response, "Invalid request.")
            result = {"error": f"Validation Error (400): {_detail_message(detail)}"}
            if isinstance(detail, dict) and detail.get("errors"):
                result["errors"] = detail["errors"]
            return result
        elif response.status_code == 403:
            detail = _detail(response, "Access denied. Check your membership tier.")
            return {"error": f"API Access Error (403): {_detail_message(detail)}"}
        elif response.status_code == 404:
            detail = _detail(response, "Resource not found.")
            return {"error": f"API Error (404): {_detail_message(detail)}"}
        elif response.status_code == 429:
            detail = _detail(response, "Limit reached.")
            return {"error": f"Limit Reached (429): {_detail_message(detail)}"}

        response.raise_for_status()
        return response.json()
    except requests.exceptions.Timeout:
        logger.warning("Request to %s timed out", url)
        return {"error": "API request timed out."}
    except requests.exceptions.ConnectionError as e:
        logger.warning("Could not connect to %s: %s", url, e)
        return {"error": f"Could not connect to backend: {e}"}
    except (json.JSONDecodeError, ValueError):
        logger.warning("Non-JSON response from %s", url)
        return {"error": "Invalid response format from backend."}
    except requests.exceptions.RequestException as e:
        logger.warning("Request to %s failed: %s", url, e)
        return {"error": f"API request failed: {e}"}
