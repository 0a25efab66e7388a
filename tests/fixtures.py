"""Database fixtures for resourceql tests (shared)."""

import pytest
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession

from tests.models import Organization, User, Post, Tag, Profile, post_tag


async def create_sample_organizations(session: AsyncSession):
    """Create and commit the two sample organizations."""
    organizations = [
        Organization(name="Acme"),
        Organization(name="Globex"),
    ]
    session.add_all(organizations)
    await session.flush()
    await session.commit()
    return organizations


@pytest.fixture(scope="function")
async def sample_organizations(db_session: AsyncSession):
    return await create_sample_organizations(db_session)


async def create_sample_users(session: AsyncSession, organizations):
    """Alice (Acme, admin), Bob (Globex, inactive) and Carol (no organization)."""
    acme, globex = organizations
    users = [
        User(
            name="Alice",
            email="alice@example.com",
            password="alice-secret",
            status="active",
            roles=["admin", "editor"],
            organization_id=acme.id,
            created_at=datetime(2024, 1, 1, 9, 0, 0),
            updated_at=datetime(2024, 1, 2, 9, 0, 0),
        ),
        User(
            name="Bob",
            email="bob@example.com",
            password="bob-secret",
            status="inactive",
            roles=["viewer"],
            organization_id=globex.id,
            created_at=datetime(2024, 2, 1, 9, 0, 0),
            updated_at=datetime(2024, 2, 2, 9, 0, 0),
        ),
        User(
            name="Carol",
            email="carol@example.com",
            password="carol-secret",
            status="active",
            roles=[],
            organization_id=None,
            created_at=datetime(2024, 3, 1, 9, 0, 0),
            updated_at=datetime(2024, 3, 2, 9, 0, 0),
        ),
    ]
    session.add_all(users)
    await session.flush()
    session.add(Profile(user_id=users[0].id, bio="Alice writes about databases."))
    await session.commit()
    return users


@pytest.fixture(scope="function")
async def sample_users(db_session: AsyncSession, sample_organizations):
    return await create_sample_users(db_session, sample_organizations)


async def create_sample_posts(session: AsyncSession, users):
    """Two posts for Alice (one draft), one for Bob, none for Carol; tagged python/sql."""
    alice, bob, _ = users
    python = Tag(name="python")
    sql = Tag(name="sql")
    session.add_all([python, sql])
    await session.flush()
    posts = [
        Post(
            title="Hello World",
            body="First post",
            published=True,
            user_id=alice.id,
            created_at=datetime(2024, 4, 1, 9, 0, 0),
        ),
        Post(
            title="Draft Notes",
            body="Not ready yet",
            published=False,
            user_id=alice.id,
            created_at=datetime(2024, 4, 2, 9, 0, 0),
        ),
        Post(
            title="Bob's News",
            body="News from Globex",
            published=True,
            user_id=bob.id,
            created_at=datetime(2024, 4, 3, 9, 0, 0),
        ),
    ]
    session.add_all(posts)
    await session.flush()
    # link tags through the association table so no collection is loaded
    await session.execute(post_tag.insert(), [
        {"post_id": posts[0].id, "tag_id": python.id},
        {"post_id": posts[0].id, "tag_id": sql.id},
        {"post_id": posts[2].id, "tag_id": sql.id},
    ])
    await session.commit()
    return {"posts": posts, "tags": [python, sql]}


@pytest.fixture(scope="function")
async def sample_posts(db_session: AsyncSession, sample_users):
    return await create_sample_posts(db_session, sample_users)


@pytest.fixture(scope="function")
async def populated_db(db_session: AsyncSession, sample_organizations, sample_users, sample_posts):
    """Everything above, keyed by kind."""
    return {
        "organizations": sample_organizations,
        "users": sample_users,
        "posts": sample_posts["posts"],
        "tags": sample_posts["tags"],
    }
