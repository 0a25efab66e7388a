from sqlalchemy import select

from resourceql import ApiQuery, ApiResource, count, field, field_set, relation, use_query
from resourceql.core.planner import (
    EagerLoadPlanner,
    build_count_map,
    build_eager_load_map,
    make_prefixed_path,
    wrap_constraint,
)
from tests.models import Post, User
from tests.resources import PostResource, TagResource, UserResource, only_published


def test_make_prefixed_path():
    assert make_prefixed_path('', 'posts') == 'posts'
    assert make_prefixed_path('posts', 'tags') == 'posts.tags'


def test_scalar_fields_need_no_preloads():
    assert build_eager_load_map(UserResource, ['id', 'name', 'nickname', 'counts']) == {}


def test_relation_uses_child_defaults():
    # OrganizationResource defaults to id,name, so nothing nested is loaded
    assert build_eager_load_map(UserResource, ['organization']) == {'organization': None}


def test_relation_accessor_still_preloads():
    assert build_eager_load_map(UserResource, ['organization_name']) == {'organization': None}


def test_requested_child_fields_are_followed():
    query = ApiQuery(fields={'posts': ['id', 'tags']})
    assert build_eager_load_map(UserResource, ['posts'], query) == {'posts': None, 'posts.tags': None}


def test_current_query_is_used_by_default():
    with use_query(ApiQuery(fields={'posts': ['tags']})):
        assert build_eager_load_map(UserResource, ['posts']) == {'posts': None, 'posts.tags': None}


def test_all_token_selects_every_child_field():
    query = ApiQuery(fields={'posts': [':all']})
    plan = build_eager_load_map(UserResource, ['posts'], query)
    assert 'posts.tags' in plan
    assert 'posts.user' in plan


def test_explicit_child_fields_win_over_request():
    query = ApiQuery(fields={'posts': ['id', 'user']})
    plan = build_eager_load_map(UserResource, ['published_posts'], query)
    assert list(plan) == ['posts.tags', 'posts']
    assert callable(plan['posts'])
    assert plan['posts'].__wrapped__ is only_published


def test_scoped_paths_come_after_plain_paths():
    plan = build_eager_load_map(UserResource, ['published_posts', 'organization'])
    assert list(plan) == ['posts.tags', 'organization', 'posts']
    assert plan['organization'] is None


def test_aliases_of_one_relation_are_visited_once():
    plan = build_eager_load_map(UserResource, ['posts', 'published_posts'])
    assert list(plan) == ['posts']
    assert plan['posts'] is None

    plan = build_eager_load_map(UserResource, ['published_posts', 'posts'])
    assert list(plan) == ['posts.tags', 'posts']
    assert plan['posts'].__wrapped__ is only_published


def test_cycles_terminate():
    query = ApiQuery(fields={'users': ['posts'], 'posts': ['user'], 'tags': ['posts']})
    plan = build_eager_load_map(UserResource, ['posts'], query)
    assert plan == {'posts': None, 'posts.user': None}

    plan = build_eager_load_map(TagResource, ['posts'], ApiQuery(fields={'posts': ['tags'], 'tags': ['posts']}))
    assert plan == {'posts': None, 'posts.tags': None}


def test_extras_are_prefixed():
    assert build_eager_load_map(UserResource, ['bio']) == {'profile': None}
    query = ApiQuery(fields={'users': ['bio']})
    assert build_eager_load_map(PostResource, ['user'], query) == {'user': None, 'user.profile': None}


def test_unknown_fields_are_ignored():
    assert build_eager_load_map(UserResource, ['nope', '']) == {}


def test_resource_classmethod_shortcuts():
    assert UserResource.eager_load_map_for(['organization']) == {'organization': None}
    assert UserResource.eager_load_counts_for() == {'posts': None}


def test_count_map_defaults_and_requests():
    assert build_count_map(UserResource) == {'posts': None}
    assert build_count_map(UserResource, ['posts']) == {'posts': None}
    assert build_count_map(UserResource, ['unknown']) == {}
    assert build_count_map(PostResource) == {'tags': None}


def test_count_map_keeps_constraints():
    def long_titles(model):
        return model.title.like('%long%')

    class Counted(ApiResource):
        RESOURCE_TYPE = 'counted'

        @classmethod
        def schema(cls):
            return field_set(field('id'), count('posts', alias='long_posts').constrain(long_titles))

    assert build_count_map(Counted) == {}
    assert build_count_map(Counted, ['long_posts']) == {'posts': long_titles}


def test_wrap_constraint_targets():
    scoped = wrap_constraint(only_published)
    # the attribute carries the criterion into the ON clause of a join
    joined = str(select(User).join(scoped(User.posts)))
    assert 'JOIN posts ON ' in joined
    assert 'AND posts.published IS ' in joined
    assert str(scoped(Post)) == str(only_published(Post))
    statement = str(scoped(select(Post)))
    assert 'WHERE posts.published IS ' in statement


def test_planner_holds_its_query():
    query = ApiQuery(fields={'posts': ['tags']})
    planner = EagerLoadPlanner(query)
    assert planner.query is query
    with use_query(ApiQuery()):
        assert planner.build_eager_load_map(UserResource, ['posts']) == {'posts': None, 'posts.tags': None}


def test_relation_target_outside_resources_is_not_followed():
    class Loose(ApiResource):
        RESOURCE_TYPE = 'loose'

        @classmethod
        def schema(cls):
            return field_set(relation('posts', 'title'))

    assert build_eager_load_map(Loose, ['posts']) == {'posts': None}
