"""
api/boundary.py

Endpoints that exist in the routing table but have no implementation yet.

Each one fails loudly with 501 so a caller (an SMS gateway webhook, a browser
hitting the login page) never mistakes it for success.
"""

import logging

from fastapi import APIRouter

from shared.errors import NotImplementedBoundaryError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/twilio")
async def handle_twilio():
    # TODO: parse the Twilio webhook form (From, Body) into cmd + a PHONE FlexId.
    logger.warning("[handle_twilio] twilio endpoint not implemented")
    raise NotImplementedBoundaryError()


@router.get("/login")
async def handle_login():
    raise NotImplementedBoundaryError()


@router.post("/login")
async def handle_login_submit():
    raise NotImplementedBoundaryError()
