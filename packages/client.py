"""
HTTP client used to invoke a package.

A package is an independently deployed process reachable over HTTP. This module
sends it one message as JSON and returns the validated reply, using only Python's
standard library. Every call carries a timeout: an unresponsive package must not
stall the request thread that is waiting on it. The error taxonomy keeps
timeouts (PackageClientTimeoutError) apart from every other failure
(PackageClientError) such as transport errors, non-200 responses and malformed
bodies. Nothing is retried.
"""

from __future__ import annotations

import json
import socket
from typing import Any, Dict
from urllib import error as urlerror
from urllib import request as urlrequest

from pydantic import ValidationError as PydanticValidationError

from shared.errors import PackageClientError, PackageClientTimeoutError
from shared.models import PackageReply

RUN_PATH = "/run"


def post_message(
    base_url: str,
    payload: Dict[str, Any],
    timeout_s: float = 5.0,
) -> PackageReply:
    """
    POST a message to a package's run endpoint and return its parsed reply.

    Args:
        base_url (str): Package base URL (e.g., "http://localhost:5001").
        payload (Dict[str, Any]): JSON-serializable body; see PackageRouter for its shape.
        timeout_s (float): Socket timeout in seconds.

    Returns:
        PackageReply: The validated `{"reply", "route"}` answer.

    Raises:
        PackageClientTimeoutError: When the request exceeds the given timeout.
        PackageClientError: For network errors, non-200 HTTP responses or bodies
            that are not a valid reply object.
    """
    url = f"{base_url.rstrip('/')}{RUN_PATH}"
    data = json.dumps(payload).encode("utf-8")

    req = urlrequest.Request(url, data=data, method="POST")
    req.add_header("Content-Type", "application/json")

    try:
        with urlrequest.urlopen(req, timeout=timeout_s) as resp:
            status = getattr(resp, "status", 200)
            body = resp.read().decode("utf-8", errors="replace")
    except urlerror.HTTPError as exc:
        raise PackageClientError(f"Package HTTP {exc.code} from {url}") from exc
    except socket.timeout as exc:
        raise PackageClientTimeoutError(f"Package at {url} timed out after {timeout_s}s") from exc
    except urlerror.URLError as exc:
        # URLError may wrap socket.timeout or other transient network errors
        if isinstance(exc.reason, socket.timeout):
            raise PackageClientTimeoutError(f"Package at {url} timed out after {timeout_s}s") from exc
        raise PackageClientError(f"Network error calling package at {url}: {exc}") from exc
    except OSError as exc:
        raise PackageClientError(f"Network error calling package at {url}: {exc}") from exc

    if status != 200:
        raise PackageClientError(f"Package HTTP {status} from {url}: {body[:200]}")
    try:
        return PackageReply.model_validate(json.loads(body))
    except json.JSONDecodeError as exc:
        raise PackageClientError(f"Invalid JSON from package at {url}: {exc}: body={body[:200]}") from exc
    except PydanticValidationError as exc:
        raise PackageClientError(f"Malformed reply from package at {url}: {exc}") from exc
