"""Checks on the starter achievement catalog"""
from scripts.seed_achievements import STARTER_ACHIEVEMENTS
from src.gamification.achievement_system import check_criteria
from src.models.achievement import Achievement


def test_starter_catalog_is_valid():
    achievements = [Achievement(**data) for data in STARTER_ACHIEVEMENTS]
    ids = [a.id for a in achievements]

    assert len(ids) == len(set(ids))
    for achievement in achievements:
        for prereq in achievement.prerequisites:
            assert prereq.achievement_id in ids


def test_challenge_champion_matches_first_completion():
    champion = Achievement(**next(a for a in STARTER_ACHIEVEMENTS if a["id"] == "challenge_champion"))

    assert check_criteria(champion.criteria, {"challenges": 1}) is True
    assert check_criteria(champion.criteria, {"challenges": 0}) is False
