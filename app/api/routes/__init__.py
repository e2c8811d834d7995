"""API routes."""

from fastapi import APIRouter

from app.api.routes import campaigns, contacts, csv_import, messages, scoring, settings, whatsapp

api_router = APIRouter()

# CRM
api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
api_router.include_router(scoring.router, prefix="/scoring", tags=["scoring"])
api_router.include_router(campaigns.router, prefix="/campaigns", tags=["campaigns"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(csv_import.router, prefix="/csv", tags=["import"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])

# WhatsApp bridge webhooks
api_router.include_router(whatsapp.router, prefix="/whatsapp", tags=["whatsapp"])
