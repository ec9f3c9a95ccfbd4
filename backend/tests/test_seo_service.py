"""SEO metadata validation, defaults, structured data and sitemap."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from services.seo_service import (
    SEOService,
    SEOValidationError,
    validate_seo_settings,
    get_default_seo,
    generate_structured_data,
    generate_sitemap,
)
from helpers import cursor_returning, update_result


def test_valid_settings_have_no_errors():
    assert validate_seo_settings({"page_path": "/pricing", "title": "Pricing", "priority": 0.4}) == []


def test_validation_collects_every_error():
    errors = validate_seo_settings({
        "page_path": "pricing",
        "title": "t" * 61,
        "description": "d" * 161,
        "canonical_url": "javascript:alert(1)",
        "priority": 2,
    })
    assert "page_path must start with /" in errors
    assert any(e.startswith("title") for e in errors)
    assert any(e.startswith("description") for e in errors)
    assert "canonical_url must be a valid URL" in errors
    assert "priority must be between 0 and 1" in errors


def test_missing_required_fields():
    errors = validate_seo_settings({})
    assert "page_path is required" in errors
    assert "title is required" in errors


def test_validation_rejects_bad_types_and_change_frequency():
    errors = validate_seo_settings({
        "page_path": "/x",
        "title": 5,
        "change_frequency": "sometimes",
        "priority": True,
        "is_active": "yes",
    })
    assert "title must be a string" in errors
    assert "title is required" in errors
    assert any(e.startswith("change_frequency must be one of") for e in errors)
    assert "priority must be a number" in errors
    assert "is_active must be true or false" in errors
    assert validate_seo_settings({"page_path": "/x", "title": "T", "change_frequency": "daily"}) == []


def test_defaults_exist_for_core_pages():
    for path in ("/", "/generator", "/payment", "/success"):
        assert get_default_seo(path)["page_path"] == path
    assert get_default_seo("/nope") is None


def test_structured_data_for_home_has_publisher():
    data = generate_structured_data(get_default_seo("/"), "https://clicklone.app/")
    assert data["@type"] == "WebSite"
    assert data["url"] == "https://clicklone.app/"
    assert data["publisher"]["name"] == "Clicklone"


def test_sitemap_skips_noindex_and_inactive():
    entries = [
        {"page_path": "/", "priority": 1.0, "change_frequency": "weekly", "updated_at": "2026-10-01T00:00:00"},
        {"page_path": "/payment", "robots": "noindex,follow", "priority": 0.3},
        {"page_path": "/old", "is_active": False},
        {"page_path": "/a&b", "priority": 0.5},
    ]
    xml = generate_sitemap(entries, "https://clicklone.app/")
    assert "<loc>https://clicklone.app/</loc>" in xml
    assert "<lastmod>2026-10-01</lastmod>" in xml
    assert "<priority>1.0</priority>" in xml
    assert "/payment" not in xml
    assert "/old" not in xml
    assert "https://clicklone.app/a&amp;b" in xml


@pytest.mark.asyncio
async def test_get_falls_back_to_default():
    db = MagicMock()
    db.seo_settings.find_one = AsyncMock(return_value=None)
    with patch("services.seo_service.database.get_db", return_value=db):
        seo = await SEOService().get_seo_settings("/generator")
    assert seo["id"] == "default:/generator"


@pytest.mark.asyncio
async def test_upsert_rejects_invalid():
    with pytest.raises(SEOValidationError) as exc:
        await SEOService().upsert_seo_settings({"page_path": "/x"})
    assert "title is required" in exc.value.errors


@pytest.mark.asyncio
async def test_upsert_reports_model_errors_as_validation_errors():
    db = MagicMock()
    db.seo_settings.find_one = AsyncMock(return_value={"id": "seo-1", "page_path": "/", "og_type": None})
    db.seo_settings.update_one = AsyncMock(return_value=update_result())
    with patch("services.seo_service.database.get_db", return_value=db):
        with pytest.raises(SEOValidationError) as exc:
            await SEOService().upsert_seo_settings({"page_path": "/", "title": "Home"})

    assert any(e.startswith("og_type") for e in exc.value.errors)
    db.seo_settings.update_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_upsert_keeps_existing_id():
    db = MagicMock()
    db.seo_settings.find_one = AsyncMock(return_value={"id": "seo-1", "page_path": "/", "title": "Old"})
    db.seo_settings.update_one = AsyncMock(return_value=update_result())
    with patch("services.seo_service.database.get_db", return_value=db):
        doc = await SEOService().upsert_seo_settings({"page_path": "/", "title": "New title"})

    assert doc["id"] == "seo-1"
    assert doc["title"] == "New title"
    assert db.seo_settings.update_one.await_args.kwargs["upsert"] is True


@pytest.mark.asyncio
async def test_sitemap_merges_saved_pages():
    db = MagicMock()
    db.seo_settings.find = MagicMock(return_value=cursor_returning([
        {"page_path": "/blog", "title": "Blog", "priority": 0.7, "change_frequency": "daily"},
    ]))
    with patch("services.seo_service.database.get_db", return_value=db):
        xml = await SEOService().get_sitemap("https://clicklone.app")

    assert "<loc>https://clicklone.app/blog</loc>" in xml
    assert "<loc>https://clicklone.app/generator</loc>" in xml
    assert "/success" not in xml
    assert xml.index("https://clicklone.app/</loc>") < xml.index("/blog</loc>")
