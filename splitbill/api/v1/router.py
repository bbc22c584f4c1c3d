"""Main v1 router aggregator"""
from fastapi import APIRouter

from splitbill.api.v1 import bills, claims, participants, receipts

# Create v1 router
api_router = APIRouter()

# Include all v1 routers
api_router.include_router(bills.router)
api_router.include_router(participants.router)
api_router.include_router(claims.router)
api_router.include_router(receipts.router)
