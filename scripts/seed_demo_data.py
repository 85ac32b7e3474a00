import logging
import sys
from pathlib import Path

from dotenv import load_dotenv


# Get the project root directory (parent of scripts directory)
script_dir = Path(__file__).parent
project_root = script_dir.parent

# Load environment variables from .env file before the engine is configured
load_dotenv(dotenv_path=project_root / ".env")

if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from backend.app.db import Base, engine, get_db_session  # noqa: E402
from backend.app.leaderboard.seed import seed_demo_group  # noqa: E402


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)
    with get_db_session() as session:
        group = seed_demo_group(session)
        group_id = group.id
    print(f"✓ Demo group ready: {group_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
