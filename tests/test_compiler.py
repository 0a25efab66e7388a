import pytest

from resourceql import ApiResource, count, field, field_set, relation, accessor, compute
from resourceql.core.compiled import CompiledFieldDefinition, FieldKind
from resourceql.core.compiler import SchemaCompiler, clear_cache, compile as compile_schema, get_compiler
from resourceql.core.fields import COUNT_PREFIX
from tests.resources import OrganizationResource, PostResource, UserResource, only_published


def test_compile_keeps_declaration_order():
    schema = compile_schema(UserResource)
    keys = schema.get_field_keys()
    assert keys[:4] == ['id', 'name', 'email', 'status']
    assert 'counts' not in keys
    assert 'posts' in keys and 'published_posts' in keys


def test_compile_is_cached_and_idempotent():
    first = compile_schema(UserResource)
    second = compile_schema(UserResource)
    assert first is second
    assert get_compiler().is_cached(UserResource)


def test_clear_cache_recompiles_equal_schema():
    first = compile_schema(UserResource)
    clear_cache()
    assert not get_compiler().is_cached(UserResource)
    second = compile_schema(UserResource)
    assert second is not first
    assert second == first


def test_uncached_compiler_always_rebuilds():
    compiler = SchemaCompiler(cache=False)
    first = compiler.compile(PostResource)
    second = compiler.compile(PostResource)
    assert first is not second
    assert first == second
    assert not compiler.is_cached(PostResource)


def test_relation_definition_is_typed():
    schema = compile_schema(UserResource)
    organization = schema.get_field('organization')
    assert organization.kind is FieldKind.RELATION
    assert organization.relation == 'organization'
    assert organization.resource is OrganizationResource
    assert organization.fields is None

    published = schema.get_field('published_posts')
    assert published.relation == 'posts'
    assert published.fields == ('id', 'title', 'tags')
    assert published.constraint is only_published

    organization_name = schema.get_field('organization_name')
    assert organization_name.accessor == 'name'
    assert organization_name.resource is None


def test_count_definitions_are_separate_from_fields():
    schema = compile_schema(UserResource)
    counts = schema.get_count_definitions()
    assert list(counts) == ['posts']
    assert counts['posts'].relation == 'posts'
    assert counts['posts'].is_default is True
    assert not schema.has_field('counts')


def test_count_does_not_replace_same_named_relation():
    declarations = field_set(
        field('id'),
        relation('posts', PostResource),
        count('posts').default(),
    )
    schema = SchemaCompiler.build_compiled_schema(declarations)
    assert schema.get_field_keys() == ['id', 'posts']
    assert schema.get_field('posts').resource is PostResource
    assert list(schema.get_count_definitions()) == ['posts']

    assert compile_schema(PostResource).has_field('tags')
    assert list(compile_schema(PostResource).get_count_definitions()) == ['tags']


def test_field_kind_precedence():
    raw = {
        'everything': {'compute': 'method', 'relation': 'posts', 'accessor': 'name'},
        'rel_and_accessor': {'relation': 'posts', 'accessor': 'name'},
        'accessor_only': {'accessor': 'a.b'},
        'plain': {},
    }
    schema = SchemaCompiler.build_compiled_schema(raw)
    assert schema.get_field('everything').kind is FieldKind.COMPUTE
    assert schema.get_field('rel_and_accessor').kind is FieldKind.RELATION
    assert schema.get_field('accessor_only').kind is FieldKind.ACCESSOR
    assert schema.get_field('plain').kind is FieldKind.PROPERTY
    assert schema.get_field('plain') == CompiledFieldDefinition()


def test_raw_declarations_are_normalised():
    raw = {
        'listed': {'relation': ['posts', 'ignored'], 'constraint': 'not callable', 'extras': 'profile'},
        'guarded': {'guards': [None, 'x', len], 'transformers': len},
        'empty_relation': {'relation': ''},
    }
    schema = SchemaCompiler.build_compiled_schema(raw)
    listed = schema.get_field('listed')
    assert listed.relation == 'posts'
    assert listed.constraint is None
    assert listed.extras == ('profile',)
    guarded = schema.get_field('guarded')
    assert guarded.guards == (len,)
    assert guarded.transformers == (len,)
    assert schema.get_field('empty_relation').relation is None


@pytest.mark.parametrize('schema_key, definition, expected', [
    (COUNT_PREFIX + 'posts', {'metric': 'count', 'relation': 'posts'}, 'posts'),
    ('posts', {'metric': 'count', 'relation': 'posts'}, 'posts'),
    ('anything', {'metric': 'count', 'relation': 'posts', 'key': 'total_posts'}, 'total_posts'),
])
def test_resolve_count_key(schema_key, definition, expected):
    assert SchemaCompiler.resolve_count_key(schema_key, definition) == expected


def test_count_without_relation_falls_back_to_key():
    schema = SchemaCompiler.build_compiled_schema({COUNT_PREFIX + 'comments': {'metric': 'count'}})
    definition = schema.get_count_definitions()['comments']
    assert definition.relation == 'comments'
    assert definition.is_default is False


def test_field_set_last_definition_wins():
    merged = field_set(
        field('name'),
        accessor('name', 'organization.name'),
        {'extra': {'compute': 'method'}},
    )
    assert merged['name'] == {'accessor': 'organization.name'}
    assert list(merged) == ['name', 'extra']


def test_builders_emit_raw_declarations():
    assert relation('posts', PostResource, alias='published').constrain(only_published).to_dict() == {
        'published': {'relation': 'posts', 'resource': PostResource, 'constraint': only_published},
    }
    assert count('posts').as_('total').default().to_dict() == {
        COUNT_PREFIX + 'total': {'metric': 'count', 'key': 'total', 'relation': 'posts', 'default': True},
    }
    assert compute('x', 'method').extras('profile', 'profile').to_dict() == {
        'x': {'compute': 'method', 'extras': ['profile']},
    }


def test_resource_without_schema_compiles_empty():
    class Bare(ApiResource):
        RESOURCE_TYPE = 'bare'

    schema = compile_schema(Bare)
    assert len(schema) == 0
    assert schema.get_count_definitions() == {}
