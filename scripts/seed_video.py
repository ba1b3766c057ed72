#!/usr/bin/env python3
"""
Seed a video record in Snowflake and print an access token for its owner.

Video records are normally created by the metadata service; this script
exists so uploads can be tried end to end against a real deployment.

Usage:
    python scripts/seed_video.py --title "My first upload"
    python scripts/seed_video.py --user-id <uuid> --create-table

Requires:
    - .env file with Snowflake credentials and JWT_SECRET
"""

import sys
import uuid
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS videos (
        video_id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL,
        title VARCHAR NOT NULL,
        description VARCHAR,
        thumbnail_url VARCHAR,
        video_url VARCHAR,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL
    )
"""


def seed_video(title: str, description: str, user_id: uuid.UUID, create_table: bool = False) -> bool:
    from src.config.settings import Settings
    from src.core.media.models import VideoRecord
    from src.infrastructure.auth.tokens import issue_access_token
    from src.infrastructure.snowflake.client import SnowflakeConnectionError, get_snowflake_connection
    from src.infrastructure.snowflake.repositories.videos import SnowflakeConfig, SnowflakeVideoRepository

    settings = Settings()

    missing = settings.validate_required_fields()
    if missing:
        print(f"ERROR: Missing configuration: {', '.join(missing)}")
        return False

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    video = VideoRecord(
        id=uuid.uuid4(),
        user_id=user_id,
        title=title,
        description=description,
    )

    try:
        print(f"Connecting to Snowflake account: {config.account}")
        with get_snowflake_connection(config) as conn:
            if create_table:
                cursor = conn.cursor()
                try:
                    cursor.execute(CREATE_TABLE_SQL)
                finally:
                    cursor.close()
                print("[OK] videos table ready")

            SnowflakeVideoRepository(conn).create_video(video)
    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        return False

    token = issue_access_token(user_id, settings.jwt_secret, issuer=settings.jwt_issuer)

    print(f"\n=== Video Created ===")
    print(f"Video ID: {video.id}")
    print(f"User ID:  {user_id}")
    print(f"\nAccess token (1 hour):\n{token}")
    print(f"\nTry:\n  curl -H 'Authorization: Bearer {token}' \\")
    print(f"    -F 'video=@clip.mp4;type=video/mp4' \\")
    print(f"    {settings.public_base_url}/api/videos/{video.id}/video")

    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Create a video record to upload into')
    parser.add_argument('--title', default='Untitled', help='Video title')
    parser.add_argument('--description', default='', help='Video description')
    parser.add_argument('--user-id', type=uuid.UUID, default=None, help='Owner (random if omitted)')
    parser.add_argument('--create-table', action='store_true', help='Create the videos table if missing')
    args = parser.parse_args()

    user_id = args.user_id or uuid.uuid4()

    success = seed_video(args.title, args.description, user_id, create_table=args.create_table)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
