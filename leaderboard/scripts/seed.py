"""
Idempotent seed script for the leaderboard JSON store.
Run via: python -m leaderboard.scripts.seed
"""
import asyncio

from leaderboard.config import settings
from leaderboard.storage import JsonTreeStore, split_path

DEMO_PLAYERS = [
    ("demo-ana", "Ana", "ana@example.com", {"EscapeRoomScore": 40, "PacmanScore": 25, "PizzeriaScore": 10, "TetrisScore": 15}),
    ("demo-bob", "Bob", "bob@example.com", {"EscapeRoomScore": 20, "PacmanScore": 60, "PizzeriaScore": 0, "TetrisScore": 5}),
    ("demo-cara", "Cara", "cara@example.com", {"EscapeRoomScore": 35, "PacmanScore": 30, "PizzeriaScore": 20, "TetrisScore": 25}),
    ("demo-dan", "Dan", "dan@example.com", {"EscapeRoomScore": 10, "PacmanScore": 15, "PizzeriaScore": 5, "TetrisScore": 0}),
    ("demo-ema", "Ema", "ema@example.com", {"EscapeRoomScore": 0, "PacmanScore": 0, "PizzeriaScore": 45, "TetrisScore": 45}),
]


def _participant_path(player_id: str) -> str:
    return "/".join([*split_path(settings.leaderboard_path), player_id])


async def seed(store: JsonTreeStore | None = None) -> int:
    store = store or JsonTreeStore(settings.storage_dir)
    created = 0
    for player_id, name, email, games in DEMO_PLAYERS:
        path = _participant_path(player_id)
        if await store.read(path) is not None:
            print(f"✓ Player {name} already exists")
            continue
        await store.write(
            path,
            {
                "user": {"Name": name, "email": email},
                "TotalScore": sum(games.values()),
                **games,
            },
        )
        created += 1
        print(f"✓ Created player: {name}")

    print(f"\n✓ Seed completed successfully ({created} created)")
    return created


if __name__ == "__main__":
    asyncio.run(seed())
