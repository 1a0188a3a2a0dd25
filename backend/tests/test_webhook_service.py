"""Tests for webhook reconciliation: dedup, ordering and terminal states."""
import asyncio
from datetime import datetime

import pytest

from crypto_checkout.exceptions import AuthenticationError, ValidationError
from crypto_checkout.models.transactions import TransactionStatus
from crypto_checkout.models.webhooks import WebhookOutcome
from crypto_checkout.services.webhook_service import WebhookService

from helpers import VALID_SIGNATURE, encode, make_event, make_transaction


@pytest.fixture
def webhook_service(store, gateway):
    return WebhookService(store, gateway)


async def deliver(service, event, signature=VALID_SIGNATURE):
    return await service.handle_delivery(encode(event), signature)


@pytest.mark.asyncio
async def test_confirmed_completes_transaction(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)
    event = make_event("charge:confirmed", transaction.provider_charge_id, created_at="2024-01-01T12:20:00Z")

    outcome = await deliver(webhook_service, event)

    assert outcome == WebhookOutcome.APPLIED
    stored = await store.get_by_id(transaction.id)
    assert stored.status == TransactionStatus.COMPLETED
    assert stored.confirmed_at == datetime(2024, 1, 1, 12, 20)


@pytest.mark.asyncio
async def test_confirmed_at_is_normalized_to_utc(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)
    event = make_event("charge:confirmed", transaction.provider_charge_id, created_at="2024-01-01T14:20:00+02:00")

    await deliver(webhook_service, event)

    stored = await store.get_by_id(transaction.id)
    assert stored.confirmed_at == datetime(2024, 1, 1, 12, 20)


@pytest.mark.asyncio
async def test_failed_fails_transaction(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)

    outcome = await deliver(webhook_service, make_event("charge:failed", transaction.provider_charge_id))

    assert outcome == WebhookOutcome.APPLIED
    stored = await store.get_by_id(transaction.id)
    assert stored.status == TransactionStatus.FAILED
    assert stored.confirmed_at is None


@pytest.mark.asyncio
async def test_created_only_records_audit_row(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)
    event = make_event("charge:created", transaction.provider_charge_id)

    outcome = await deliver(webhook_service, event)

    assert outcome == WebhookOutcome.RECORDED
    assert (await store.get_by_id(transaction.id)).status == TransactionStatus.PENDING
    record = await store.get_webhook_event(event["id"])
    assert record.webhook_type == "charge:created"
    assert record.payload == event


@pytest.mark.asyncio
async def test_duplicate_delivery_applies_once(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)
    event = make_event("charge:confirmed", transaction.provider_charge_id)

    first = await deliver(webhook_service, event)
    after_first = await store.get_by_id(transaction.id)
    second = await deliver(webhook_service, event)
    after_second = await store.get_by_id(transaction.id)

    assert first == WebhookOutcome.APPLIED
    assert second == WebhookOutcome.DUPLICATE
    assert after_second.updated_at == after_first.updated_at
    assert len(await store.list_webhook_events(transaction.provider_charge_id)) == 1


@pytest.mark.asyncio
async def test_failed_after_confirmed_stays_completed(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)

    await deliver(webhook_service, make_event("charge:confirmed", transaction.provider_charge_id))
    outcome = await deliver(webhook_service, make_event("charge:failed", transaction.provider_charge_id))

    assert outcome == WebhookOutcome.ALREADY_TERMINAL
    stored = await store.get_by_id(transaction.id)
    assert stored.status == TransactionStatus.COMPLETED
    assert stored.confirmed_at is not None
    assert len(await store.list_webhook_events(transaction.provider_charge_id)) == 2


@pytest.mark.asyncio
async def test_confirmed_after_failed_stays_failed(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)

    await deliver(webhook_service, make_event("charge:failed", transaction.provider_charge_id))
    outcome = await deliver(webhook_service, make_event("charge:confirmed", transaction.provider_charge_id))

    assert outcome == WebhookOutcome.ALREADY_TERMINAL
    stored = await store.get_by_id(transaction.id)
    assert stored.status == TransactionStatus.FAILED
    assert stored.confirmed_at is None


@pytest.mark.asyncio
async def test_unknown_charge_is_recorded_and_succeeds(webhook_service, store):
    event = make_event("charge:confirmed", "charge-never-created")

    outcome = await deliver(webhook_service, event)

    assert outcome == WebhookOutcome.UNKNOWN_CHARGE
    assert await store.get_webhook_event(event["id"]) is not None
    assert (await store.aggregate_counts()).total == 0


@pytest.mark.asyncio
async def test_unknown_event_type_is_recorded_and_ignored(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)
    event = make_event("charge:delayed", transaction.provider_charge_id)

    outcome = await deliver(webhook_service, event)

    assert outcome == WebhookOutcome.IGNORED
    assert (await store.get_by_id(transaction.id)).status == TransactionStatus.PENDING
    assert (await store.get_webhook_event(event["id"])).webhook_type == "charge:delayed"


@pytest.mark.asyncio
@pytest.mark.parametrize("signature", [None, "", "not-a-signature", "md5=abc"])
async def test_bad_signature_is_rejected_before_anything_is_written(webhook_service, store, signature):
    event = make_event("charge:confirmed", "charge_1")

    with pytest.raises(AuthenticationError):
        await deliver(webhook_service, event, signature=signature)

    assert await store.get_webhook_event(event["id"]) is None


@pytest.mark.asyncio
async def test_bad_signature_wins_over_bad_payload(webhook_service):
    with pytest.raises(AuthenticationError):
        await webhook_service.handle_delivery(b"not json", None)


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_body", [b"not json", b"[]", b"", b"{}"])
async def test_malformed_body_is_rejected(webhook_service, raw_body):
    with pytest.raises(ValidationError):
        await webhook_service.handle_delivery(raw_body, VALID_SIGNATURE)


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["id", "type", "created_at", "data"])
async def test_missing_top_level_field_is_rejected(webhook_service, store, missing):
    event = make_event("charge:confirmed", "charge_1", webhook_id="evt_missing")
    del event[missing]

    with pytest.raises(ValidationError):
        await deliver(webhook_service, event)

    assert await store.get_webhook_event("evt_missing") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["id", "code", "metadata"])
async def test_missing_charge_field_is_rejected(webhook_service, missing):
    event = make_event("charge:confirmed", "charge_1")
    del event["data"][missing]

    with pytest.raises(ValidationError):
        await deliver(webhook_service, event)


@pytest.mark.asyncio
async def test_concurrent_duplicates_apply_once(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)
    event = make_event("charge:confirmed", transaction.provider_charge_id)

    outcomes = await asyncio.gather(
        deliver(webhook_service, event),
        deliver(webhook_service, event),
    )

    assert sorted(o.value for o in outcomes) == ["applied", "duplicate"]
    assert len(await store.list_webhook_events(transaction.provider_charge_id)) == 1
    assert (await store.get_by_id(transaction.id)).status == TransactionStatus.COMPLETED


@pytest.mark.asyncio
async def test_concurrent_conflicting_events_pick_one_terminal_state(webhook_service, store):
    transaction = make_transaction()
    await store.insert(transaction)

    outcomes = await asyncio.gather(
        deliver(webhook_service, make_event("charge:confirmed", transaction.provider_charge_id)),
        deliver(webhook_service, make_event("charge:failed", transaction.provider_charge_id)),
    )

    assert sorted(o.value for o in outcomes) == ["already_terminal", "applied"]
    stored = await store.get_by_id(transaction.id)
    assert stored.status in (TransactionStatus.COMPLETED, TransactionStatus.FAILED)
    assert (stored.confirmed_at is not None) == (stored.status == TransactionStatus.COMPLETED)
