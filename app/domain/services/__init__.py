"""Domain services."""

from app.domain.services.campaign_filter_service import CampaignFilterService
from app.domain.services.campaign_service import CampaignService
from app.domain.services.contact_import_service import ContactImportService
from app.domain.services.contact_service import ContactService
from app.domain.services.inbox_service import InboxService
from app.domain.services.message_ingestion_service import MessageIngestionService
from app.domain.services.scoring_service import ScoringService
from app.domain.services.whatsapp_protection_service import WhatsAppProtectionService

__all__ = [
    "CampaignFilterService",
    "CampaignService",
    "ContactImportService",
    "ContactService",
    "InboxService",
    "MessageIngestionService",
    "ScoringService",
    "WhatsAppProtectionService",
]
