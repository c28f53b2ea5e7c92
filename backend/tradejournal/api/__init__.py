"""API router initialization"""
from fastapi import APIRouter
from tradejournal.api.routes import rules, rules_history

api_router = APIRouter()

api_router.include_router(rules.router, prefix="/rules", tags=["Rules"])
# History log and point-in-time activity
api_router.include_router(rules_history.router, prefix="/rules-history", tags=["Rule History"])
