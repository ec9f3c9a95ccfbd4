"""
Pending results and payment tokens: 24h expiry, single-use tokens.
"""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from models import GeneratedPhrase, GenerationRequest, Tone
from services import pending_result_service
from services.pending_result_service import (
    save_pending_result,
    create_payment_token,
    is_payment_token_valid,
    mark_payment_token_used,
    phrases_from_result,
    delete_expired,
)
from helpers import update_result, delete_result


def _phrases():
    return [GeneratedPhrase(id="phrase-1", text="Wake up and smell it", tone=Tone.HUMOROUS)]


@pytest.mark.asyncio
async def test_save_rejects_empty_result():
    with pytest.raises(ValueError):
        await save_pending_result([])


@pytest.mark.asyncio
async def test_save_stores_phrases_with_24h_expiry():
    db = MagicMock()
    db.pending_results.insert_one = AsyncMock()
    request = GenerationRequest(concept="Coffee shop", tone=Tone.HUMOROUS, language="en")

    with patch("services.pending_result_service.database.get_db", return_value=db):
        result_id = await save_pending_result(_phrases(), request, "sess-1")

    doc = db.pending_results.insert_one.await_args.args[0]
    assert doc["result_id"] == result_id
    assert doc["session_id"] == "sess-1"
    assert doc["is_unlocked"] is False
    assert doc["expires_at"] - doc["created_at"] == timedelta(hours=24)
    assert doc["content"]["phrases"][0]["text"] == "Wake up and smell it"
    assert doc["content"]["request"]["tone"] == "humorous"
    assert phrases_from_result(doc) == _phrases()


@pytest.mark.asyncio
async def test_create_token_is_unused_and_expiring():
    db = MagicMock()
    db.payment_tokens.insert_one = AsyncMock()

    with patch("services.pending_result_service.database.get_db", return_value=db):
        token = await create_payment_token("r-1", 399, "EUR")

    doc = db.payment_tokens.insert_one.await_args.args[0]
    assert doc["token"] == token
    assert doc["result_id"] == "r-1"
    assert doc["amount"] == 399
    assert doc["currency"] == "EUR"
    assert doc["is_used"] is False
    assert doc["expires_at"] - doc["created_at"] == timedelta(hours=24)


@pytest.mark.asyncio
async def test_token_validity_queries_unused_unexpired():
    db = MagicMock()
    db.payment_tokens.find_one = AsyncMock(return_value={"token": "t-1"})

    with patch("services.pending_result_service.database.get_db", return_value=db):
        assert await is_payment_token_valid("t-1") is True

    query = db.payment_tokens.find_one.await_args.args[0]
    assert query["token"] == "t-1"
    assert query["is_used"] is False
    assert "$gt" in query["expires_at"]


@pytest.mark.asyncio
async def test_missing_token_is_invalid_without_db():
    with patch("services.pending_result_service.database.get_db") as get_db:
        assert await is_payment_token_valid(None) is False
        assert await is_payment_token_valid("") is False
    get_db.assert_not_called()


@pytest.mark.asyncio
async def test_token_consumed_only_once():
    db = MagicMock()
    db.payment_tokens.update_one = AsyncMock(side_effect=[update_result(1, 1), update_result(0, 0)])

    with patch("services.pending_result_service.database.get_db", return_value=db):
        assert await mark_payment_token_used("t-1") is True
        assert await mark_payment_token_used("t-1") is False

    query = db.payment_tokens.update_one.await_args.args[0]
    assert query == {"token": "t-1", "is_used": False}


@pytest.mark.asyncio
async def test_delete_expired_counts():
    db = MagicMock()
    db.pending_results.delete_many = AsyncMock(return_value=delete_result(3))
    db.payment_tokens.delete_many = AsyncMock(return_value=delete_result(2))

    with patch("services.pending_result_service.database.get_db", return_value=db):
        deleted = await delete_expired()

    assert deleted == {"pending_results": 3, "payment_tokens": 2}


def test_ttls_are_24_hours():
    assert pending_result_service.PENDING_RESULT_TTL == timedelta(hours=24)
    assert pending_result_service.PAYMENT_TOKEN_TTL == timedelta(hours=24)
