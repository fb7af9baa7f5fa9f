import random
from datetime import datetime, timedelta

import pytest

from savevibe.challenges import GamifiedSavingsService
from savevibe.schemas import BadgeCreate, SavingsChallengeCreate, SavingsChallengeUpdate, TransactionCreate

NOW = datetime(2024, 3, 10, 12, 0)


@pytest.fixture
def savings(storage):
    return GamifiedSavingsService(storage, random.Random(11))


@pytest.fixture
def user(storage):
    return storage.create_user("kabir", "hash")


def _challenge(target=1000, days=7, badge_id=None, start=NOW):
    return SavingsChallengeCreate(
        title="Weekly Saver",
        description="Save this week",
        target_amount=target,
        start_date=start,
        end_date=start + timedelta(days=days),
        badge_id=badge_id,
    )


def test_create_challenge_starts_empty(savings, user):
    challenge = savings.create_challenge(user.id, _challenge())
    assert challenge.current_amount == 0
    assert challenge.is_completed is False
    assert savings.get_user_challenges(user.id) == [challenge]


def test_add_savings_completes_and_awards_badge(savings, storage, user):
    badge = storage.create_badge(user.id, BadgeCreate(name="Weekly Warrior", description="d", icon="trophy"))
    challenge = savings.create_challenge(user.id, _challenge(target=1000, badge_id=badge.id))

    partial = savings.add_savings(challenge.id, 400)
    assert partial.current_amount == 400
    assert partial.is_completed is False
    assert storage.get_badge(badge.id).earned is False

    done = savings.add_savings(challenge.id, 600)
    assert done.is_completed is True
    earned = storage.get_badge(badge.id)
    assert earned.earned is True
    assert earned.earned_date is not None


def test_add_savings_unknown_challenge(savings):
    assert savings.add_savings(42, 100) is None


def test_active_challenges_exclude_completed_and_expired(savings, user):
    active = savings.create_challenge(user.id, _challenge())
    expired = savings.create_challenge(user.id, _challenge(start=NOW - timedelta(days=30)))
    completed = savings.create_challenge(user.id, _challenge(target=10))
    savings.add_savings(completed.id, 10)

    ids = [c.id for c in savings.get_active_challenges(user.id, now=NOW)]
    assert ids == [active.id]
    assert expired.id not in ids


def test_update_and_delete_challenge(savings, user):
    challenge = savings.create_challenge(user.id, _challenge())

    updated = savings.update_challenge(challenge.id, SavingsChallengeUpdate(title="Coffee Skipper"))
    assert updated.title == "Coffee Skipper"
    assert updated.target_amount == challenge.target_amount

    assert savings.delete_challenge(challenge.id) is True
    assert savings.get_challenge(challenge.id) is None
    assert savings.update_challenge(challenge.id, SavingsChallengeUpdate(title="x")) is None


def test_suggestion_uses_top_category(savings, storage, user):
    for category, amount in [("food", 1234), ("shopping", 5000), ("food", 100)]:
        storage.create_transaction(user.id, TransactionCreate(
            amount=amount, category=category, description="x", date=NOW, type="expense",
        ))

    suggestion = savings.generate_savings_suggestion(user.id)

    assert "₹500" in suggestion


def test_sample_challenges_pair_with_badges(savings, storage, user):
    created = savings.setup_sample_challenges(user.id, now=NOW)

    assert len(created) == 4
    badges = {b.id: b for b in storage.get_badges(user.id)}
    assert len(badges) == 4
    assert {badges[c.badge_id].name for c in created} == {
        "Weekly Warrior", "Coffee Conqueror", "Shopping Stopper", "Emergency Master",
    }
    assert all(c.end_date > NOW for c in created)


def test_update_challenge_ignores_nulls(savings, user):
    challenge = savings.create_challenge(user.id, _challenge())

    updated = savings.update_challenge(challenge.id, SavingsChallengeUpdate(end_date=None, title=None))

    assert updated.end_date == challenge.end_date
    assert updated.title == challenge.title
    assert savings.get_active_challenges(user.id, now=NOW) == [updated]
