"""PayoutService: revenue split, transfer attempt and the payout ledger row."""

from decimal import Decimal

import pytest
import stripe

from mentorship.models.payment import PaymentStatus, PaymentType
from mentorship.services.payout_service import PayoutService, payout_idempotency_key, split_revenue
from tests.factories.builders import create_mentor


@pytest.fixture
def service(unit_db, stripe_service):
    return PayoutService(unit_db, stripe_service=stripe_service)


@pytest.mark.parametrize(
    "gross,share,fee",
    [
        (Decimal("100.00"), Decimal("75.00"), Decimal("25.00")),
        (Decimal("20.00"), Decimal("15.00"), Decimal("5.00")),
        (Decimal("0.01"), Decimal("0.01"), Decimal("0.00")),
        (Decimal("27.50"), Decimal("20.63"), Decimal("6.87")),
    ],
)
def test_split_revenue_sums_to_gross(gross, share, fee):
    assert split_revenue(gross) == (share, fee)
    assert sum(split_revenue(gross)) == gross


class TestInitiatePayout:
    def test_successful_transfer(self, service, unit_db, mock_transfer):
        mentor = create_mentor(unit_db)

        result = service.initiate_payout(
            mentor_id=mentor.id,
            amount=Decimal("45.00"),
            source_type="call",
            source_id="call-1",
            transfer_group="call_call-1",
        )

        assert result.status == "success"
        assert result.payment.type == PaymentType.MENTOR_PAYOUT.value
        assert result.payment.status == PaymentStatus.COMPLETED.value
        assert result.payment.stripe_transfer_id == "tr_test_123"
        kwargs = mock_transfer.call_args.kwargs
        assert kwargs["amount"] == 4500
        assert kwargs["destination"] == mentor.mentor_profile.stripe_account_id
        assert kwargs["idempotency_key"] == payout_idempotency_key("call", "call-1")
        assert kwargs["metadata"]["source_id"] == "call-1"

    def test_failed_transfer_is_recorded_not_raised(self, service, unit_db, mock_transfer):
        mock_transfer.side_effect = stripe.StripeError("account restricted")
        mentor = create_mentor(unit_db)

        result = service.initiate_payout(
            mentor_id=mentor.id,
            amount=Decimal("15.00"),
            source_type="group_session",
            source_id="gs-1",
            transfer_group="group_session_gs-1",
        )

        assert result.status == "failed"
        assert result.payment.status == PaymentStatus.FAILED.value
        assert "account restricted" in result.payment.failure_reason

    def test_no_payout_destination_skips(self, service, unit_db, mock_transfer):
        mentor = create_mentor(unit_db, payouts_enabled=False)
        result = service.initiate_payout(
            mentor_id=mentor.id, amount=Decimal("10.00"), source_type="call", source_id="c", transfer_group="call_c"
        )
        assert result.status == "skipped"
        assert result.reason == "no_payout_destination"
        mock_transfer.assert_not_called()

    def test_zero_amount_skips(self, service, unit_db, mock_transfer):
        mentor = create_mentor(unit_db)
        result = service.initiate_payout(
            mentor_id=mentor.id, amount=Decimal("0"), source_type="call", source_id="c", transfer_group="call_c"
        )
        assert result.status == "skipped"
        mock_transfer.assert_not_called()

    def test_second_payout_for_same_source_is_duplicate(self, service, unit_db, mock_transfer):
        mentor = create_mentor(unit_db)
        kwargs = dict(
            mentor_id=mentor.id, amount=Decimal("45.00"), source_type="call", source_id="c", transfer_group="call_c"
        )
        first = service.initiate_payout(**kwargs)
        second = service.initiate_payout(**kwargs)
        assert second.status == "duplicate"
        assert second.payment.id == first.payment.id
        assert mock_transfer.call_count == 1
