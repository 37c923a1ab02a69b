from gov2private.db.repositories import deep_merge


def test_nested_dicts_merge_recursively() -> None:
    base = {"phases": {"normalize": {"skills": ["sql"]}, "draft": "old"}}
    patch = {"phases": {"normalize": {"name": "Dana"}}}

    merged = deep_merge(base, patch)

    assert merged == {"phases": {"normalize": {"skills": ["sql"], "name": "Dana"}, "draft": "old"}}


def test_lists_and_scalars_are_replaced() -> None:
    base = {"bullets": ["a", "b", "c"], "draft": "old", "meta": {"n": 1}}
    merged = deep_merge(base, {"bullets": ["z"], "draft": "new", "meta": 5})

    assert merged == {"bullets": ["z"], "draft": "new", "meta": 5}


def test_none_replaces_existing_value() -> None:
    assert deep_merge({"draft": "old"}, {"draft": None}) == {"draft": None}


def test_inputs_are_not_mutated() -> None:
    base = {"a": {"b": [1]}}
    patch = {"a": {"c": [2]}}
    merged = deep_merge(base, patch)
    merged["a"]["b"].append(99)
    merged["a"]["c"].append(99)

    assert base == {"a": {"b": [1]}}
    assert patch == {"a": {"c": [2]}}
