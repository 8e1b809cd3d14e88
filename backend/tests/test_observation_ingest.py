# backend/tests/test_observation_ingest.py

"""Tests for observation submission, attribution, batches and discounts."""

from datetime import datetime, timedelta, timezone

import pytest

from pricecompare.core.config import settings
from pricecompare.core.database import utcnow
from pricecompare.core.errors import ForbiddenError, NotFoundError, ValidationError
from pricecompare.core.identity import AdminSubmitter, Anonymous, StoreSubmitter
from pricecompare.models import ObservationSource, StoreStatus
from pricecompare.services.nearby_engine import NearbyPriceEngine
from pricecompare.services.observation_ingest import ObservationIngest

BARCODE = "6408430000128"


def _payload(**overrides):
    payload = {
        "barcode": BARCODE,
        "barcode_type": "EAN13",
        "amount": "3.49",
        "latitude": 60.4520,
        "longitude": 22.2670,
    }
    payload.update(overrides)
    return payload


def _discount_payload(**overrides):
    now = utcnow()
    payload = {
        "discount_type": "PERCENTAGE",
        "value": "20",
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=1),
    }
    payload.update(overrides)
    return payload


class TestAttribution:
    """Who submits decides store, source and confidence."""

    async def test_shopper(self, store_repo) -> None:
        result = await ObservationIngest(store_repo).submit(_payload(), Anonymous())
        observation = result.observation
        assert observation.store_id is None
        assert observation.source == ObservationSource.SHOPPER
        assert float(observation.confidence) == pytest.approx(settings.SOURCE_WEIGHT_SHOPPER)
        assert result.response.product.barcode == BARCODE
        assert result.response.store is None

    async def test_shopper_store_id_ignored(self, make_store, store_repo) -> None:
        store_id = await make_store()
        result = await ObservationIngest(store_repo).submit(_payload(store_id=store_id), Anonymous())
        assert result.observation.store_id is None
        assert result.observation.source == ObservationSource.SHOPPER

    async def test_store_user(self, make_store, store_repo) -> None:
        store_id = await make_store("Lidl Testi")
        result = await ObservationIngest(store_repo).submit(_payload(), StoreSubmitter(store_id))
        observation = result.observation
        assert observation.store_id == store_id
        assert observation.source == ObservationSource.STORE_USER
        assert float(observation.confidence) == pytest.approx(settings.SOURCE_WEIGHT_STORE)
        assert result.response.store.name == "Lidl Testi"

    async def test_store_user_for_other_store_forbidden(self, make_store, store_repo) -> None:
        mine = await make_store("Mine")
        theirs = await make_store("Theirs")
        with pytest.raises(ForbiddenError):
            await ObservationIngest(store_repo).submit(_payload(store_id=theirs), StoreSubmitter(mine))

    async def test_admin_on_behalf_of_store(self, make_store, store_repo) -> None:
        store_id = await make_store()
        result = await ObservationIngest(store_repo).submit(_payload(store_id=store_id), AdminSubmitter(1))
        assert result.observation.store_id == store_id
        assert result.observation.source == ObservationSource.STORE_USER

    async def test_admin_without_store_is_shopper(self, store_repo) -> None:
        result = await ObservationIngest(store_repo).submit(_payload(), AdminSubmitter(1))
        assert result.observation.source == ObservationSource.SHOPPER

    async def test_unknown_store(self, store_repo) -> None:
        with pytest.raises(NotFoundError):
            await ObservationIngest(store_repo).submit(_payload(), StoreSubmitter(9999))
        with pytest.raises(NotFoundError):
            await ObservationIngest(store_repo).submit(_payload(store_id=9999), AdminSubmitter(1))


class TestSubmitValidation:
    """Field checks on single submissions."""

    async def test_store_location_used_when_coordinates_missing(self, make_store, store_repo) -> None:
        store_id = await make_store(latitude="60.4550000", longitude="22.3050000")
        payload = _payload()
        del payload["latitude"], payload["longitude"]
        result = await ObservationIngest(store_repo).submit(payload, StoreSubmitter(store_id))
        assert result.response.location.latitude == pytest.approx(60.455)
        assert result.response.location.longitude == pytest.approx(22.305)

    async def test_shopper_needs_coordinates(self, store_repo) -> None:
        payload = _payload()
        del payload["longitude"]
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).submit(payload, Anonymous())

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount": "0"},
            {"amount": "-1.00"},
            {"amount": "abc"},
            {"latitude": 95.0},
            {"longitude": -200.0},
            {"barcode": ""},
            {"barcode_type": ""},
        ],
    )
    async def test_rejected(self, store_repo, overrides) -> None:
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).submit(_payload(**overrides), Anonymous())

    async def test_not_an_object(self, store_repo) -> None:
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).submit(["3.49"], Anonymous())

    async def test_field_aliases(self, store_repo) -> None:
        payload = {"gtin": BARCODE, "barcodeType": "ean-13", "price": "2.10", "lat": 60.45, "lng": 22.27}
        result = await ObservationIngest(store_repo).submit(payload, Anonymous())
        assert result.response.product.barcode_type == "EAN13"
        assert result.response.amount == pytest.approx(2.10)

    async def test_timestamp_normalized_to_utc(self, store_repo) -> None:
        result = await ObservationIngest(store_repo).submit(
            _payload(timestamp="2026-10-18T15:00:00+03:00"), Anonymous()
        )
        assert result.observation.observed_at.isoformat() == "2026-10-18T12:00:00"

    async def test_strict_barcode_validation(self, store_repo, monkeypatch) -> None:
        monkeypatch.setattr(settings, "STRICT_BARCODE_VALIDATION", True)
        ingest = ObservationIngest(store_repo)
        with pytest.raises(ValidationError):
            await ingest.submit(_payload(barcode="4006381333932"), Anonymous())
        result = await ingest.submit(_payload(barcode="4006381333931"), Anonymous())
        assert result.response.product.barcode == "4006381333931"

    async def test_product_name_recorded(self, store_repo) -> None:
        await ObservationIngest(store_repo).submit(_payload(product_name="Maito 1L"), Anonymous())
        product = await store_repo.get_product(BARCODE, "EAN13")
        assert product.name == "Maito 1L"


class TestDiscountWithObservation:
    """Optional discount written after the observation."""

    async def test_discount_attached(self, make_store, store_repo) -> None:
        store_id = await make_store()
        result = await ObservationIngest(store_repo).submit(
            _payload(discount=_discount_payload()), StoreSubmitter(store_id)
        )
        assert result.discount is not None
        assert result.discount.product_id == result.observation.product_id
        assert result.discount_error is None
        response = result.to_response()
        assert response.discount.value == pytest.approx(20.0)

    async def test_store_wide_discount(self, make_store, store_repo) -> None:
        store_id = await make_store()
        result = await ObservationIngest(store_repo).submit(
            _payload(discount=_discount_payload(store_wide=True)), StoreSubmitter(store_id)
        )
        assert result.discount.product_id is None

    async def test_shopper_discount_reported_not_raised(self, store_repo) -> None:
        result = await ObservationIngest(store_repo).submit(_payload(discount=_discount_payload()), Anonymous())
        assert result.discount is None
        assert result.discount_error == "Discounts require a store"
        assert result.to_response().discount_error == "Discounts require a store"
        assert await store_repo.find_active_observations(BARCODE, "EAN13")

    async def test_invalid_discount_rejects_submission(self, make_store, store_repo) -> None:
        store_id = await make_store()
        bad = _discount_payload(value="150")
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).submit(_payload(discount=bad), StoreSubmitter(store_id))

    async def test_discount_visible_in_nearby(self, make_store, store_repo) -> None:
        store_id = await make_store()
        await ObservationIngest(store_repo).submit(
            _payload(amount="4.00", discount=_discount_payload(value="25")), StoreSubmitter(store_id)
        )
        comparison = await NearbyPriceEngine(store_repo).nearby(BARCODE, "EAN13", 60.4518, 22.2666, 5, utcnow())
        [entry] = comparison.results
        assert len(entry.discounts) == 1
        assert float(entry.discounted_price) == pytest.approx(3.00)

    async def test_discount_visible_with_aware_now(self, make_store, store_repo) -> None:
        store_id = await make_store()
        await ObservationIngest(store_repo).submit(
            _payload(amount="4.00", discount=_discount_payload(value="25")), StoreSubmitter(store_id)
        )
        comparison = await NearbyPriceEngine(store_repo).nearby(
            BARCODE, "EAN13", 60.4518, 22.2666, 5, datetime.now(timezone.utc)
        )
        [entry] = comparison.results
        assert len(entry.discounts) == 1


class TestBatch:
    """Batch submission reports per-item failures."""

    async def test_partial_failure(self, store_repo) -> None:
        items = [_payload(amount="3.49"), _payload(amount="3.59"), _payload(amount="3.69"), _payload(amount="0")]
        result = await ObservationIngest(store_repo).submit_batch(items, Anonymous())
        assert result.processed == 3
        assert result.failed == 1
        assert result.errors[0]["index"] == 3
        assert result.errors[0]["input"] == items[3]
        assert len(result.observations) == 3
        assert len(await store_repo.find_active_observations(BARCODE, "EAN13")) == 3

    async def test_item_errors_do_not_stop_later_items(self, make_store, store_repo) -> None:
        mine = await make_store("Mine")
        theirs = await make_store("Theirs")
        items = ["not an object", _payload(store_id=theirs), _payload()]
        result = await ObservationIngest(store_repo).submit_batch(items, StoreSubmitter(mine))
        assert result.processed == 1
        assert [e["index"] for e in result.errors] == [0, 1]

    @pytest.mark.parametrize("raw", [None, {"barcode": BARCODE}, "[]", []])
    async def test_malformed_batch(self, store_repo, raw) -> None:
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).submit_batch(raw, Anonymous())

    async def test_too_many_items(self, store_repo) -> None:
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).submit_batch([_payload()] * 3, Anonymous(), max_batch_size=2)
        assert await store_repo.find_active_observations(BARCODE, "EAN13") == []


class TestRoundTrip:
    async def test_submitted_price_found_nearby(self, store_repo) -> None:
        ingest = ObservationIngest(store_repo)
        cheap = await ingest.submit(_payload(amount="2.99"), Anonymous())
        dear = await ingest.submit(_payload(amount="3.99", latitude=60.4600), Anonymous())

        comparison = await NearbyPriceEngine(store_repo).nearby(BARCODE, "EAN13", 60.4518, 22.2666, 5, utcnow())
        assert [r.observation.id for r in comparison.results] == [cheap.observation.id, dear.observation.id]

    async def test_pending_store_prices_hidden(self, make_store, store_repo) -> None:
        pending = await make_store(status=StoreStatus.PENDING)
        await ObservationIngest(store_repo).submit(_payload(), StoreSubmitter(pending))
        comparison = await NearbyPriceEngine(store_repo).nearby(BARCODE, "EAN13", 60.4518, 22.2666, 5, utcnow())
        assert comparison.results == []


class TestDeactivate:
    async def _observation(self, store_repo, submitter, **overrides):
        return (await ObservationIngest(store_repo).submit(_payload(**overrides), submitter)).observation

    async def test_anonymous_forbidden(self, store_repo) -> None:
        observation = await self._observation(store_repo, Anonymous())
        with pytest.raises(ForbiddenError):
            await ObservationIngest(store_repo).deactivate_observation(observation.id, Anonymous())

    async def test_store_only_own(self, make_store, store_repo) -> None:
        mine = await make_store("Mine")
        theirs = await make_store("Theirs")
        observation = await self._observation(store_repo, StoreSubmitter(theirs))
        with pytest.raises(ForbiddenError):
            await ObservationIngest(store_repo).deactivate_observation(observation.id, StoreSubmitter(mine))

        removed = await ObservationIngest(store_repo).deactivate_observation(observation.id, StoreSubmitter(theirs))
        assert removed.is_active is False
        assert await store_repo.find_active_observations(BARCODE, "EAN13") == []

    async def test_admin_any(self, store_repo) -> None:
        observation = await self._observation(store_repo, Anonymous())
        await ObservationIngest(store_repo).deactivate_observation(observation.id, AdminSubmitter(1))
        assert await store_repo.find_active_observations(BARCODE, "EAN13") == []

    async def test_unknown(self, store_repo) -> None:
        with pytest.raises(NotFoundError):
            await ObservationIngest(store_repo).deactivate_observation(12345, AdminSubmitter(1))


class TestCreateDiscount:
    async def test_store_creates_product_discount(self, make_store, store_repo) -> None:
        store_id = await make_store()
        discount = await ObservationIngest(store_repo).create_discount(
            store_id, _discount_payload(barcode=BARCODE, barcode_type="EAN13"), StoreSubmitter(store_id)
        )
        product = await store_repo.get_product(BARCODE, "EAN13")
        assert discount.product_id == product.id
        assert discount.store_id == store_id

    async def test_store_wide(self, make_store, store_repo) -> None:
        store_id = await make_store()
        discount = await ObservationIngest(store_repo).create_discount(
            store_id, _discount_payload(store_wide=True), AdminSubmitter(1)
        )
        assert discount.product_id is None

    async def test_product_required_unless_store_wide(self, make_store, store_repo) -> None:
        store_id = await make_store()
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).create_discount(store_id, _discount_payload(), StoreSubmitter(store_id))

    async def test_window_must_be_ordered(self, make_store, store_repo) -> None:
        store_id = await make_store()
        now = utcnow()
        payload = _discount_payload(store_wide=True, valid_from=now, valid_until=now - timedelta(days=1))
        with pytest.raises(ValidationError):
            await ObservationIngest(store_repo).create_discount(store_id, payload, AdminSubmitter(1))

    async def test_permissions(self, make_store, store_repo) -> None:
        mine = await make_store("Mine")
        theirs = await make_store("Theirs")
        ingest = ObservationIngest(store_repo)
        with pytest.raises(ForbiddenError):
            await ingest.create_discount(mine, _discount_payload(store_wide=True), Anonymous())
        with pytest.raises(ForbiddenError):
            await ingest.create_discount(theirs, _discount_payload(store_wide=True), StoreSubmitter(mine))

    async def test_unknown_store(self, store_repo) -> None:
        with pytest.raises(NotFoundError):
            await ObservationIngest(store_repo).create_discount(
                9999, _discount_payload(store_wide=True), AdminSubmitter(1)
            )
