"""
Tests for the reconciliation API.
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from marketplace.tests.factories import UserFactory
from settlement.models import PaymentRecord
from settlement.tests.factories import PaymentRecordFactory


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def staff_user(db):
    user = UserFactory(username="operator")
    user.is_staff = True
    user.save()
    return user


@pytest.fixture
def url():
    return reverse("settlement:uncredited_payments")


class TestUncreditedPaymentListView:
    """Tests for GET /api/v1/settlement/reconciliation/uncredited-payments/."""

    def test_requires_authentication(self, db, api_client, url):
        response = api_client.get(url)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_requires_staff(self, api_client, url, creator):
        api_client.force_authenticate(user=creator)

        response = api_client.get(url)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_lists_uncredited_payments(self, api_client, url, staff_user):
        record = PaymentRecordFactory()
        PaymentRecordFactory(earnings_credited_at=timezone.now())
        PaymentRecord.objects.filter(pk=record.pk).update(
            created_at=timezone.now() - timedelta(minutes=10)
        )
        api_client.force_authenticate(user=staff_user)

        response = api_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 1
        item = response.data["results"][0]
        assert item["id"] == str(record.id)
        assert item["creator_id"] == str(record.contract.creator_id)
        assert item["payout_amount"] == record.payout_amount

    def test_older_than_seconds(self, api_client, url, staff_user):
        PaymentRecordFactory()
        api_client.force_authenticate(user=staff_user)

        response = api_client.get(url, {"older_than_seconds": 0})

        assert response.data["count"] == 1

    @pytest.mark.parametrize("value", ["soon", "-1"])
    def test_rejects_bad_older_than(self, api_client, url, staff_user, value):
        api_client.force_authenticate(user=staff_user)

        response = api_client.get(url, {"older_than_seconds": value})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "older_than_seconds" in response.data
