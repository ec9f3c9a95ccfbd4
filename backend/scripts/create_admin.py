"""
Create or promote the dashboard admin.
Uses ADMIN_EMAIL (default admin@clicklone.com) and ADMIN_PASSWORD from env,
or --email / --password arguments. Idempotent.
Never outputs plaintext passwords.

Usage (from backend/):
  python -m scripts.create_admin --email admin@clicklone.com --password 'S3cure-pass'
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Ensure backend root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


async def main(email=None, password=None):
    from database import database
    from services.admin_bootstrap import run_bootstrap_admin

    await database.connect()
    try:
        result = await run_bootstrap_admin(email=email, password=password)
        print(f"Admin: {result['action']} - {result['message']}")
        if result.get("user_id"):
            print(f"  user_id: {result['user_id']}")
    finally:
        await database.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote the Clicklone admin user")
    parser.add_argument("--email", default=None)
    parser.add_argument("--password", default=None)
    args = parser.parse_args()
    asyncio.run(main(args.email, args.password))
