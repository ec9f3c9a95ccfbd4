"""SEO Service - per-page metadata, Schema.org structured data and sitemap.xml."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
from xml.sax.saxutils import escape

from pydantic import ValidationError

from database import database
from models import SEOSettings, ChangeFrequency

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 160

DEFAULT_SEO: Dict[str, Dict[str, Any]] = {
    "/": {
        "title": "Clicklone - AI Marketing Tagline Generator",
        "description": "Generate 10 high-converting marketing taglines in seconds. Six tones, six languages.",
        "keywords": "tagline generator, slogan, marketing copy, AI copywriting",
        "schema_type": "WebSite",
        "priority": 1.0,
        "change_frequency": ChangeFrequency.WEEKLY,
    },
    "/generator": {
        "title": "Tagline Generator - Clicklone",
        "description": "Describe your product, pick a tone and language, and get ten ready-to-use taglines.",
        "keywords": "slogan generator, tagline ideas, catchphrase",
        "schema_type": "WebApplication",
        "priority": 0.9,
        "change_frequency": ChangeFrequency.MONTHLY,
    },
    "/payment": {
        "title": "Unlock your taglines - Clicklone",
        "description": "One-time secure payment to unlock your pack of 10 taglines.",
        "schema_type": "WebPage",
        "robots": "noindex,follow",
        "priority": 0.3,
        "change_frequency": ChangeFrequency.YEARLY,
    },
    "/success": {
        "title": "Your taglines are ready - Clicklone",
        "description": "Thanks for your purchase. Copy and use your new taglines.",
        "schema_type": "WebPage",
        "robots": "noindex,nofollow",
        "priority": 0.1,
        "change_frequency": ChangeFrequency.YEARLY,
    },
}


class SEOValidationError(ValueError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def _is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


TEXT_FIELDS = (
    "page_path", "title", "description", "keywords", "og_title", "og_description", "og_image",
    "og_type", "twitter_card", "twitter_title", "twitter_description", "twitter_image",
    "canonical_url", "robots", "schema_type",
)
CHANGE_FREQUENCIES = [f.value for f in ChangeFrequency]


def _text(data: Dict[str, Any], field: str) -> str:
    value = data.get(field)
    return value.strip() if isinstance(value, str) else ""


def validate_seo_settings(data: Dict[str, Any]) -> List[str]:
    """Return a list of validation errors (empty when valid)."""
    errors = [
        f"{field} must be a string"
        for field in TEXT_FIELDS
        if data.get(field) is not None and not isinstance(data[field], str)
    ]

    page_path = _text(data, "page_path")
    if not page_path:
        errors.append("page_path is required")
    elif not page_path.startswith("/"):
        errors.append("page_path must start with /")

    title = _text(data, "title")
    if not title:
        errors.append("title is required")
    elif len(title) > MAX_TITLE_LENGTH:
        errors.append(f"title must be at most {MAX_TITLE_LENGTH} characters")

    if len(_text(data, "description")) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")

    for field in ("canonical_url", "og_image", "twitter_image"):
        value = _text(data, field)
        if value and not _is_valid_url(value):
            errors.append(f"{field} must be a valid URL")

    priority = data.get("priority")
    if priority is not None:
        if isinstance(priority, bool):
            errors.append("priority must be a number")
        else:
            try:
                priority = float(priority)
            except (TypeError, ValueError):
                errors.append("priority must be a number")
            else:
                if not 0 <= priority <= 1:
                    errors.append("priority must be between 0 and 1")

    change_frequency = data.get("change_frequency")
    if change_frequency is not None and change_frequency not in CHANGE_FREQUENCIES:
        errors.append(f"change_frequency must be one of: {', '.join(CHANGE_FREQUENCIES)}")

    if "is_active" in data and not isinstance(data["is_active"], bool):
        errors.append("is_active must be true or false")

    return errors


def get_default_seo(page_path: str) -> Optional[Dict[str, Any]]:
    defaults = DEFAULT_SEO.get(page_path)
    if not defaults:
        return None
    settings = SEOSettings(id=f"default:{page_path}", page_path=page_path, **defaults)
    return settings.model_dump(mode="json")


def generate_structured_data(seo: Dict[str, Any], base_url: str) -> Dict[str, Any]:
    """Schema.org JSON-LD for a page."""
    schema_type = seo.get("schema_type") or "WebPage"
    url = seo.get("canonical_url") or f"{base_url.rstrip('/')}{seo.get('page_path', '/')}"
    data = {
        "@context": "https://schema.org",
        "@type": schema_type,
        "name": seo.get("title"),
        "description": seo.get("description"),
        "url": url,
    }
    if seo.get("og_image"):
        data["image"] = seo["og_image"]
    if schema_type == "WebSite":
        organization = {
            "@type": "Organization",
            "name": "Clicklone",
            "logo": {"@type": "ImageObject", "url": f"{base_url.rstrip('/')}/logo.png"},
        }
        data["author"] = organization
        data["publisher"] = organization
    return data


def generate_sitemap(entries: List[Dict[str, Any]], base_url: str) -> str:
    base = base_url.rstrip("/")
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        if not entry.get("is_active", True):
            continue
        if "noindex" in (entry.get("robots") or ""):
            continue
        lastmod = (entry.get("updated_at") or datetime.now(timezone.utc).isoformat())[:10]
        change_frequency = entry.get("change_frequency") or ChangeFrequency.WEEKLY.value
        if isinstance(change_frequency, ChangeFrequency):
            change_frequency = change_frequency.value
        lines.extend([
            "  <url>",
            f"    <loc>{escape(base + entry['page_path'])}</loc>",
            f"    <lastmod>{lastmod}</lastmod>",
            f"    <changefreq>{change_frequency}</changefreq>",
            f"    <priority>{float(entry.get('priority', 0.5)):.1f}</priority>",
            "  </url>",
        ])
    lines.append("</urlset>")
    return "\n".join(lines)


class SEOService:

    async def get_seo_settings(self, page_path: str) -> Optional[Dict[str, Any]]:
        db = database.get_db()
        doc = await db.seo_settings.find_one({"page_path": page_path, "is_active": True}, {"_id": 0})
        return doc or get_default_seo(page_path)

    async def list_seo_settings(self) -> List[Dict[str, Any]]:
        db = database.get_db()
        return await db.seo_settings.find({}, {"_id": 0}).sort("priority", -1).to_list(length=500)

    async def upsert_seo_settings(self, data: Dict[str, Any]) -> Dict[str, Any]:
        errors = validate_seo_settings(data)
        if errors:
            raise SEOValidationError(errors)

        db = database.get_db()
        page_path = data["page_path"].strip()
        existing = await db.seo_settings.find_one({"page_path": page_path}, {"_id": 0})
        try:
            settings = SEOSettings(**{**(existing or {}), **data, "page_path": page_path})
        except ValidationError as e:
            raise SEOValidationError([
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ])
        if existing:
            settings.id = existing["id"]

        now = datetime.now(timezone.utc).isoformat()
        doc = settings.model_dump(mode="json")
        doc["updated_at"] = now
        await db.seo_settings.update_one(
            {"page_path": page_path},
            {"$set": doc, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )
        logger.info(f"SEO settings saved for {page_path}")
        return doc

    async def delete_seo_settings(self, seo_id: str) -> bool:
        db = database.get_db()
        result = await db.seo_settings.delete_one({"id": seo_id})
        return result.deleted_count > 0

    async def get_sitemap(self, base_url: str) -> str:
        entries = {path: get_default_seo(path) for path in DEFAULT_SEO}
        for doc in await self.list_seo_settings():
            entries[doc["page_path"]] = doc
        ordered = sorted(entries.values(), key=lambda e: e.get("priority", 0.5), reverse=True)
        return generate_sitemap(ordered, base_url)


seo_service = SEOService()
