"""
Gamified savings: time-boxed savings challenges that unlock badges.
"""
import logging
import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from savevibe.classifier import round_half_up
from savevibe.schemas import (
    BadgeCreate,
    SavingsChallenge,
    SavingsChallengeCreate,
    SavingsChallengeUpdate,
)

logger = logging.getLogger(__name__)

SAMPLE_BADGES = [
    ("Weekly Warrior", "Completed a weekly savings challenge", "trophy"),
    ("Coffee Conqueror", "Saved money by skipping expensive coffee", "coffee"),
    ("Shopping Stopper", "Completed a shopping freeze challenge", "shopping-bag"),
    ("Emergency Master", "Built up your emergency fund", "shield"),
]

# (title, description, target, days to run); paired with SAMPLE_BADGES by position
SAMPLE_CHALLENGES = [
    ("Weekly Saver", "Save ₹1,000 this week by reducing food delivery orders", 1000, 7),
    ("Coffee Skipper", "Skip your daily fancy coffee 3 times this week to save ₹600", 600, 7),
    ("Shopping Freeze", "No online shopping for two weeks to save ₹3,000", 3000, 14),
    ("Emergency Fund Builder", "Build your emergency fund by saving ₹5,000 this month", 5000, 30),
]


class GamifiedSavingsService:
    def __init__(self, storage, rng: Optional[random.Random] = None):
        self.storage = storage
        self.rng = rng or random.Random()
        self.challenges: Dict[int, SavingsChallenge] = {}
        self._next_id = 1

    def create_challenge(self, user_id: int, data: SavingsChallengeCreate) -> SavingsChallenge:
        challenge = SavingsChallenge(
            id=self._next_id,
            user_id=user_id,
            current_amount=0.0,
            is_completed=False,
            **data.model_dump(),
        )
        self._next_id += 1
        self.challenges[challenge.id] = challenge
        return challenge

    def get_challenge(self, challenge_id: int) -> Optional[SavingsChallenge]:
        return self.challenges.get(challenge_id)

    def get_user_challenges(self, user_id: int) -> List[SavingsChallenge]:
        return [c for c in self.challenges.values() if c.user_id == user_id]

    def get_active_challenges(self, user_id: int, now: Optional[datetime] = None) -> List[SavingsChallenge]:
        """Challenges that are neither completed nor past their end date."""
        now = now or datetime.now()
        return [c for c in self.get_user_challenges(user_id) if not c.is_completed and c.end_date > now]

    def add_savings(self, challenge_id: int, amount: float) -> Optional[SavingsChallenge]:
        challenge = self.challenges.get(challenge_id)
        if challenge is None:
            return None

        new_amount = challenge.current_amount + amount
        is_completed = new_amount >= challenge.target_amount

        # Completing a challenge for the first time unlocks its badge
        if is_completed and not challenge.is_completed and challenge.badge_id:
            badge = self.storage.get_badge(challenge.badge_id)
            if badge is not None and badge.user_id == challenge.user_id:
                self.storage.update_badge(badge.id, {"earned": True, "earned_date": datetime.now()})
                logger.info("User %s earned badge '%s'", challenge.user_id, badge.name)

        updated = challenge.model_copy(update={"current_amount": new_amount, "is_completed": is_completed})
        self.challenges[challenge_id] = updated
        return updated

    def update_challenge(self, challenge_id: int, data: SavingsChallengeUpdate) -> Optional[SavingsChallenge]:
        challenge = self.challenges.get(challenge_id)
        if challenge is None:
            return None
        updated = challenge.model_copy(update=data.model_dump(exclude_unset=True, exclude_none=True))
        self.challenges[challenge_id] = updated
        return updated

    def delete_challenge(self, challenge_id: int) -> bool:
        return self.challenges.pop(challenge_id, None) is not None

    def generate_savings_suggestion(self, user_id: int) -> str:
        """Suggest saving a tenth of the user's top spending category this week."""
        totals: Dict[str, float] = {}
        for transaction in self.storage.get_transactions(user_id):
            totals[transaction.category] = totals.get(transaction.category, 0.0) + transaction.amount

        top_category, top_amount = "", 0.0
        for category, amount in totals.items():
            if amount > top_amount:
                top_category, top_amount = category, amount

        weekly = round_half_up(top_amount * 0.1)
        suggestions = [
            f'Save ₹{weekly} this week by cutting back on {top_category} to unlock the "Smart Saver" badge!',
            f"Challenge: Reduce your {top_category} spending by 10% this week and save ₹{weekly}!",
            f"Ready to level up? Save ₹{weekly} from your {top_category} budget this week!",
            f"New challenge unlocked: Save ₹{weekly} this week and earn bonus points!",
        ]
        return self.rng.choice(suggestions)

    def setup_sample_challenges(self, user_id: int, now: Optional[datetime] = None) -> List[SavingsChallenge]:
        now = now or datetime.now()
        created = []
        for (badge_name, badge_desc, icon), (title, desc, target, days) in zip(SAMPLE_BADGES, SAMPLE_CHALLENGES):
            badge = self.storage.create_badge(
                user_id, BadgeCreate(name=badge_name, description=badge_desc, icon=icon)
            )
            created.append(self.create_challenge(user_id, SavingsChallengeCreate(
                title=title,
                description=desc,
                target_amount=target,
                start_date=now,
                end_date=now + timedelta(days=days),
                badge_id=badge.id,
            )))
        return created
