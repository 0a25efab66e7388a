from resourceql.core.guards import GuardEvaluator, passes_guards


def test_no_guards_pass():
    assert passes_guards((), object()) is True
    assert passes_guards(None, object()) is True


def test_only_literal_false_hides():
    assert passes_guards([lambda r, req: None], object()) is True
    assert passes_guards([lambda r, req: 0], object()) is True
    assert passes_guards([lambda r, req: ''], object()) is True
    assert passes_guards([lambda r, req: False], object()) is False


def test_guards_receive_resource_and_request():
    seen = []

    def guard(resource, request):
        seen.append((resource, request))
        return True

    resource = object()
    assert GuardEvaluator().passes_guards([guard], resource, {'user': 1}) is True
    assert seen == [(resource, {'user': 1})]


def test_evaluation_stops_at_first_rejection():
    calls = []

    def reject(resource, request):
        calls.append('reject')
        return False

    def never(resource, request):
        calls.append('never')
        return True

    assert passes_guards([reject, never], object()) is False
    assert calls == ['reject']


def test_non_callable_entries_are_ignored():
    assert passes_guards([None, 'nope'], object()) is True
