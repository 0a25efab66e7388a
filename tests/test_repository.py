import pytest

from resourceql import ApiQuery, ApiRepository, parse_query, use_query
from tests.fixtures import *  # noqa: F401,F403
from tests.models import Post, Tag, User
from tests.resources import UserResource


@pytest.mark.asyncio
async def test_request_to_payload(db_session, populated_db):
    params = {
        'fields[users]': 'id,name,organization,counts',
        'counts[users]': 'posts',
        'filters': '{"$has": ["posts"]}',
        'order': 'id:asc',
    }
    with use_query(parse_query(params)):
        users = await ApiRepository(User, db_session).all()
        payload = UserResource.collection(users).resolve()
    alice, bob, _ = populated_db['users']
    acme, globex = populated_db['organizations']
    assert payload == [
        {
            '_type': 'users',
            'id': alice.id,
            'name': 'Alice',
            'organization': {'_type': 'organizations', 'id': acme.id, 'name': 'Acme'},
            'counts': {'posts': 2},
        },
        {
            '_type': 'users',
            'id': bob.id,
            'name': 'Bob',
            'organization': {'_type': 'organizations', 'id': globex.id, 'name': 'Globex'},
            'counts': {'posts': 1},
        },
    ]


@pytest.mark.asyncio
async def test_nested_projection_from_preloads(db_session, populated_db):
    query = ApiQuery(
        fields={'users': ['name', 'published_posts'], 'tags': ['name']},
        filters={'name': 'Alice'},
    )
    users = await ApiRepository(User, db_session, query=query).all()
    payload = UserResource.collection(users, query=query).resolve()
    assert payload[0]['published_posts'] == [{
        '_type': 'posts',
        'id': populated_db['posts'][0].id,
        'title': 'Hello World',
        'tags': [
            {'_type': 'tags', 'id': populated_db['tags'][0].id, 'name': 'python'},
            {'_type': 'tags', 'id': populated_db['tags'][1].id, 'name': 'sql'},
        ],
    }]


@pytest.mark.asyncio
async def test_paginate(db_session, populated_db):
    query = ApiQuery(order={'id': 'asc'}, limit=2, page=2)
    records, total = await ApiRepository(User, db_session, query=query).paginate()
    assert total == 3
    assert [u.name for u in records] == ['Carol']
    meta = UserResource.collection(records, query=query, total=total).pagination_meta()
    assert meta == {'total': 3, 'count': 1, 'continue': False}


@pytest.mark.asyncio
async def test_paginate_first_page_continues(db_session, populated_db):
    query = ApiQuery(order={'id': 'asc'}, limit=2)
    records, total = await ApiRepository(User, db_session, query=query).paginate()
    assert [u.name for u in records] == ['Alice', 'Bob']
    assert UserResource.collection(records, query=query, total=total).pagination_meta()['continue'] is True


@pytest.mark.asyncio
async def test_find_ignores_filters_and_order(db_session, populated_db):
    bob = populated_db['users'][1]
    query = ApiQuery(filters={'name': 'Alice'}, order={'name': 'desc'}, fields={'users': ['organization']})
    found = await ApiRepository(User, db_session, query=query).find(bob.id)
    assert found is bob
    assert found.organization.name == 'Globex'
    assert await ApiRepository(User, db_session, query=query).find(9999) is None


@pytest.mark.asyncio
async def test_scopes_apply_once(db_session, populated_db):
    alice, _, carol = populated_db['users']
    repo = ApiRepository(User, db_session, query=ApiQuery(order={'id': 'asc'}))
    records = await repo.scope_by_ids([carol.id, alice.id, carol.id]).all()
    assert [u.name for u in records] == ['Alice', 'Carol']
    # scopes are cleared after each call
    assert len(await repo.all()) == 3

    records = await ApiRepository(Tag, db_session).scope_by_id('python', column='name').all()
    assert [t.name for t in records] == ['python']


@pytest.mark.asyncio
async def test_custom_scope_and_dialect(db_session, populated_db):
    repo = ApiRepository(Post, db_session, query=ApiQuery(order={'id': 'asc'}))
    assert repo.dialect == db_session.bind.dialect.name
    repo.add_scope(lambda q: q.where(Post.published.is_(True)))
    assert [p.title for p in await repo.all()] == ['Hello World', "Bob's News"]
