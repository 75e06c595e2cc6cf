"""Seed the database with demo users, posts, votes and comments."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from linkshare.config import settings
from linkshare.database import engine, async_session, Base
from linkshare.models import VOTE_KINDS, Comment, Post, User, Vote
from linkshare.security import hash_password

CATEGORIES = ["Python", "Databases", "DevOps", "Security", "Frontend", "Career"]
SITES = ["https://example.com", "https://example.org", "https://example.net"]
DEMO_PASSWORD = "password"


async def seed(small: bool = False, reset: bool = False):
    num_users = 5 if small else 25
    num_posts = 30 if small else 500

    print(f"Seeding: {num_users} users, {num_posts} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Hashing is deliberately slow; every demo account shares one hash.
    password_hash = hash_password(DEMO_PASSWORD)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:03d}",
                email=f"user_{i:03d}@example.com",
                password_hash=password_hash,
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users (password: {DEMO_PASSWORD!r})")

        total_votes = 0
        total_comments = 0
        for i in range(num_posts):
            category = random.choice(CATEGORIES)
            post = Post(
                title=f"Link {i}: notes on {category.lower()}",
                link=f"{random.choice(SITES)}/articles/{i}",
                category=category,
                user_id=random.choice(users).id,
                created_at=datetime.now(timezone.utc) - timedelta(minutes=random.randint(0, 60 * 24 * 90)),
            )
            session.add(post)
            await session.flush()

            for voter in random.sample(users, k=random.randint(0, len(users))):
                session.add(Vote(post_id=post.id, user_id=voter.id, kind=random.choice(VOTE_KINDS)))
                total_votes += 1

            for _ in range(random.randint(0, settings.MAX_COMMENTS_PER_POST)):
                session.add(Comment(
                    text=f"Thanks for sharing #{i}!",
                    post_id=post.id,
                    user_id=random.choice(users).id,
                ))
                total_comments += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Votes: {total_votes}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the linkshare database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (30 posts)")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, reset=args.reset))


if __name__ == "__main__":
    main()
