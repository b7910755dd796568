"""Database seeder for local development and cache benchmarking.

Every seeded user has the password ``password123`` so you can log in
through ``/api/v1/auth/login`` straight away.
"""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from article_api.database import Base, async_session, engine
from article_api.models import Article, User
from article_api.security import hash_password

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
          "caching", "testing", "performance", "security", "asyncio", "sqlalchemy"]

SEED_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 5 if small else 50
    num_articles = 100 if small else 10000

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # One hash for everyone; bcrypt is deliberately slow.
    password_hash = hash_password(SEED_PASSWORD)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                email=f"user_{i:04d}@example.com",
                password=password_hash,
                name=f"User {i}",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        batch_size = 500
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            for i in range(batch_start, batch_end):
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                topic = random.choice(TOPICS)
                session.add(Article(
                    title=f"Article {i}: How to optimize {topic} applications",
                    description=f"A guide to running {topic} in production. " * 5,
                    # ~10% drafts without a publish date
                    published_at=created if random.random() > 0.1 else None,
                    created_at=created,
                    updated_at=created,
                    author_id=random.choice(users).id,
                ))
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users} (password: {SEED_PASSWORD})")
    print(f"  Articles: {num_articles}")


def main():
    parser = argparse.ArgumentParser(description="Seed the articles database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
