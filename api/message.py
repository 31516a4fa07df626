"""
api/message.py

The utterance endpoint and the index page.

Endpoints:
  - GET /:  Minimal HTML page with a form posting to /.
  - POST /: Receives a form-encoded utterance (`cmd`, optional `uid` and
            `flexidtype`), runs it through the Dispatcher and answers with the
            reply as HTML. The channel address (FlexId) comes from the
            transport layer in the `X-Flex-Id` header, not from the form.

Errors raised by the dispatcher are turned into plain-text error responses by
the handlers in api/error_handlers.py; this module never builds error bodies.
"""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Header, Request
from fastapi.responses import HTMLResponse

from core.orchestrator import Dispatcher

logger = logging.getLogger(__name__)

router = APIRouter()

INDEX_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Ava</title></head>
<body>
<form method="post" action="/">
  <input type="text" name="cmd" autofocus autocomplete="off">
  <button type="submit">Send</button>
</form>
</body>
</html>
"""


def get_dispatcher(request: Request) -> Dispatcher:
    """The Dispatcher built at startup, see main.lifespan."""
    return request.app.state.dispatcher


@router.get("/", response_class=HTMLResponse)
async def handle_index():
    return HTMLResponse(INDEX_HTML)


# Declared sync on purpose: FastAPI runs it in its threadpool, so the blocking
# classifier, SQLite and package calls of one request do not stall the others.
@router.post("/", response_class=HTMLResponse)
def handle_message(
    cmd: Optional[str] = Form(None),
    uid: Optional[str] = Form(None),
    flexidtype: Optional[str] = Form(None),
    x_flex_id: Optional[str] = Header(None),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    Process one utterance and return the reply text.

    Args:
        cmd (Optional[str]): The utterance. Required; empty is rejected with 400.
        uid (Optional[str]): Numeric user id; empty means unresolved (0).
        flexidtype (Optional[str]): Numeric channel-type code; empty means 0.
        x_flex_id (Optional[str]): Channel address set by the transport layer.

    Returns:
        HTMLResponse: The reply (or "ok" for a training command) with status 200.
        Markup in the reply is escaped; packages answer with plain text.
    """
    result = dispatcher.process(cmd=cmd, uid=uid, flexidtype=flexidtype, flex_id=x_flex_id)
    return HTMLResponse(html.escape(result.reply, quote=False))
