"""Seed the starter achievement catalog (safe to re-run)"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path so we can import src modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from src.db import queries
from src.db.connection import db
from src.models.achievement import Achievement

STARTER_ACHIEVEMENTS = [
    {
        "id": "welcome",
        "title": "Welcome to WellnessHub",
        "description": "Complete your profile setup",
        "icon": "🎉",
        "category": "milestone",
        "type": "milestone",
        "rarity": "common",
        "points": 100,
        "experience_points": 100,
        "criteria": {"target": "custom", "operator": ">=", "value": 1},
    },
    {
        "id": "first_steps",
        "title": "First Steps",
        "description": "Log your first 1000 steps",
        "icon": "👟",
        "category": "health",
        "type": "milestone",
        "rarity": "common",
        "points": 50,
        "experience_points": 50,
        "criteria": {"target": "steps", "operator": ">=", "value": 1000},
    },
    {
        "id": "hydration_hero",
        "title": "Hydration Hero",
        "description": "Drink 8 glasses of water in a day",
        "icon": "💧",
        "category": "health",
        "type": "progress",
        "rarity": "common",
        "points": 75,
        "experience_points": 75,
        "criteria": {"target": "water", "operator": ">=", "value": 8, "timeframe": "daily"},
    },
    {
        "id": "team_player",
        "title": "Team Player",
        "description": "Make your first friend",
        "icon": "🤝",
        "category": "social",
        "type": "social",
        "rarity": "common",
        "points": 150,
        "experience_points": 150,
        "criteria": {"target": "friends", "operator": ">=", "value": 1},
    },
    {
        "id": "challenge_champion",
        "title": "Challenge Champion",
        "description": "Complete your first challenge",
        "icon": "🏅",
        "category": "challenge",
        "type": "completion",
        "rarity": "rare",
        "points": 200,
        "experience_points": 200,
        "criteria": {"target": "challenges", "operator": ">=", "value": 1},
    },
    {
        "id": "streak_master",
        "title": "Streak Master",
        "description": "Maintain a 7-day activity streak",
        "icon": "🔥",
        "category": "streak",
        "type": "streak",
        "rarity": "epic",
        "points": 300,
        "experience_points": 300,
        "criteria": {"target": "streak", "operator": ">=", "value": 7, "timeframe": "consecutive"},
    },
    {
        "id": "wellness_guru",
        "title": "Wellness Guru",
        "description": "Reach level 10",
        "icon": "🧘",
        "category": "level",
        "type": "milestone",
        "rarity": "legendary",
        "points": 500,
        "experience_points": 500,
        "criteria": {"target": "level", "operator": ">=", "value": 10},
        "prerequisites": [{"achievement_id": "first_steps"}],
        "featured": True,
    },
]


async def main():
    """Insert every starter achievement that is not in the catalog yet"""
    print("🌱 Seeding achievement catalog...\n")

    await db.init_pool()
    created = 0

    try:
        for data in STARTER_ACHIEVEMENTS:
            achievement = Achievement(**data)

            if await queries.fetch_achievement(achievement.id) is not None:
                print(f"⏭️  {achievement.id} already exists, skipping")
                continue

            await queries.create_achievement(achievement)
            created += 1
            print(f"✅ {achievement.icon} {achievement.title}")
    finally:
        await db.close_pool()

    print(f"\n🏆 Created {created} of {len(STARTER_ACHIEVEMENTS)} achievements")


if __name__ == "__main__":
    asyncio.run(main())
