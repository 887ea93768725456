"""
Tests for public listing order and VIP expiry.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from core.amounts import parse_amount, parse_positive_int
from core.exceptions import ValidationFailed
from listings.models import Post
from listings.services import PostService

pytestmark = pytest.mark.django_db


@pytest.fixture
def ranked_posts(seller):
    """A live VIP, an expired VIP with a higher priority and a regular post."""
    now = timezone.now()
    regular = Post.objects.create(
        user=seller, title="Regular", price=1, published_at=now)
    expired = Post.objects.create(
        user=seller, title="Expired VIP", price=1, is_vip=True, vip_priority=10,
        vip_expires_at=now - timedelta(hours=1), published_at=now - timedelta(days=40))
    live = Post.objects.create(
        user=seller, title="Live VIP", price=1, is_vip=True, vip_priority=5,
        vip_expires_at=now + timedelta(days=3), published_at=now - timedelta(days=2))
    return live, expired, regular


def test_expired_vip_is_not_prioritised(ranked_posts):
    live, expired, regular = ranked_posts
    ordered = list(Post.objects.vip_ordered())

    assert ordered == [live, regular, expired]
    assert ordered[2].effective_vip_priority == 0


def test_expire_vip_posts_command(ranked_posts, capsys):
    live, expired, _regular = ranked_posts
    call_command("expire_vip_posts")

    expired.refresh_from_db()
    assert not expired.is_vip
    assert not expired.is_active
    assert expired.verify_status == Post.NOT_VERIFIED
    live.refresh_from_db()
    assert live.is_vip
    assert "1 annonce(s)" in capsys.readouterr().out


def test_public_posts_view(client, ranked_posts):
    live, expired, regular = ranked_posts
    Post.objects.filter(pk=regular.pk).update(is_active=False)

    response = client.get(reverse("listings:public-posts"))

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["id"] for r in results] == [live.id, expired.id]
    assert results[0]["is_vip"] is True
    assert results[1]["is_vip"] is False


def test_public_posts_rejects_bad_pagination(client):
    response = client.get(reverse("listings:public-posts"), {"limit": "many"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_mark_sold_is_idempotent(vehicle_post):
    assert PostService.mark_sold(vehicle_post.id) is True
    assert PostService.mark_sold(vehicle_post.id) is False
    vehicle_post.refresh_from_db()
    assert vehicle_post.is_sold


@pytest.mark.parametrize("raw, expected", [
    ("500,000", Decimal("500000")),
    ("425 000 000", Decimal("425000000")),
    (1200, Decimal("1200")),
    ("19.99", Decimal("19.99")),
    (Decimal("7"), Decimal("7")),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw, "amount") == expected


@pytest.mark.parametrize("raw", ["-1", "abc", "NaN", "Infinity", True, "1" * 30])
def test_parse_amount_rejects(raw):
    with pytest.raises(ValidationFailed):
        parse_amount(raw, "amount")


def test_parse_amount_optional_and_zero():
    assert parse_amount("", "fee", required=False) is None
    assert parse_amount("0", "fee") == Decimal("0")
    with pytest.raises(ValidationFailed):
        parse_amount("0", "price", allow_zero=False)


def test_parse_positive_int():
    assert parse_positive_int(" 42 ", "post_id") == 42
    assert parse_positive_int(None, "post_id", required=False) is None
    with pytest.raises(ValidationFailed):
        parse_positive_int("4.2", "post_id")
