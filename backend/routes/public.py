"""Public Routes - site configuration, counters, SEO metadata and sitemap."""
from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import Response
import logging

from models import Tone
from services import settings_service
from services.analytics_service import analytics_service
from services.prompt_builder import LANGUAGE_NAMES, TONE_LABELS, get_tone_verbs
from services.seo_service import seo_service, generate_structured_data
from services.stripe_service import format_price
from utils.public_app_url import get_public_app_url

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/public", tags=["public"])
sitemap_router = APIRouter(tags=["public"])


@router.get("/config")
async def get_public_config():
    """Everything the UI needs before the first generation."""
    general = await settings_service.get_general_settings()
    payment = await settings_service.get_payment_settings()
    return {
        "site_name": general.site_name,
        "site_description": general.site_description,
        "payment_required": payment.payment_required,
        "free_trials_allowed": payment.free_trials_allowed,
        "trial_limit": payment.trial_limit,
        "price": {
            "amount": payment.payment_amount,
            "currency": payment.payment_currency,
            "display": format_price(payment.payment_amount, payment.payment_currency),
        },
        "tones": [
            {"value": tone.value, "label": TONE_LABELS[tone]}
            for tone in Tone
        ],
        "languages": [
            {"code": code, "name": name}
            for code, name in LANGUAGE_NAMES.items()
        ],
    }


@router.get("/tones/{tone}/verbs")
async def get_tone_suggestions(tone: Tone, language: str = Query("fr")):
    return {"tone": tone.value, "verbs": get_tone_verbs(tone, language)}


@router.get("/stats")
async def get_public_stats():
    try:
        return await analytics_service.get_app_stats()
    except Exception as e:
        logger.error(f"Failed to compute app stats: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load stats")


@router.get("/seo")
async def get_page_seo(path: str = Query("/", description="Page path, e.g. /generator")):
    seo = await seo_service.get_seo_settings(path)
    if not seo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No SEO settings for this page")
    return {
        **seo,
        "structured_data": generate_structured_data(seo, get_public_app_url()),
    }


@sitemap_router.get("/sitemap.xml")
async def get_sitemap():
    xml = await seo_service.get_sitemap(get_public_app_url())
    return Response(content=xml, media_type="application/xml")
