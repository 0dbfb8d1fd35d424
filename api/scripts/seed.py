"""Seed the database with local development data.

Run with: python -m scripts.seed
Creates a Courtly staff user, a club member and one pending club submission
for the staff review queue.
"""

import asyncio

from sqlalchemy import select

from app.core.auth import hash_password
from app.core.database import async_session_factory, engine
from app.models import Base, ClubSubmission, RequestStatus, User, UserType

USERS = [
    {
        "email": "staff@example.com",
        "password": "staff1234",
        "full_name": "Courtly Staff",
        "user_type": UserType.COURTLY,
    },
    {
        "email": "member@example.com",
        "password": "member1234",
        "full_name": "Jamie Rivera",
        "user_type": UserType.MEMBER,
    },
]

SUBMISSION = {
    "name": "Riverside Tennis Club",
    "email": "info@riverside.example.com",
    "phone": "555-0142",
    "website": "https://riverside.example.com",
    "address": "100 River Rd",
    "city": "Portland",
    "state": "OR",
    "zip": "97201",
    "description": "Community club with lit hard courts.",
    "courts": 4,
    "court_type": "hard",
}


async def seed():
    # Create tables (in dev; production runs migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        result = await db.execute(select(User).where(User.email == USERS[0]["email"]))
        if result.scalar_one_or_none():
            print("Database already seeded - skipping.")
            return

        users = {}
        for data in USERS:
            user = User(
                email=data["email"],
                hashed_password=hash_password(data["password"]),
                full_name=data["full_name"],
                user_type=data["user_type"],
                email_verified=True,
            )
            db.add(user)
            users[data["user_type"]] = user
        await db.flush()

        member = users[UserType.MEMBER]
        db.add(
            ClubSubmission(
                **SUBMISSION,
                status=RequestStatus.PENDING,
                submitted_by=member.id,
                submitter_email=member.email,
                submitter_name=member.display_name,
            )
        )
        await db.commit()

        print(f"Seeded {len(USERS)} users:")
        for data in USERS:
            print(f"  {data['email']} / {data['password']} ({data['user_type'].value})")
        print(f"  1 pending club submission: {SUBMISSION['name']}")


if __name__ == "__main__":
    asyncio.run(seed())
