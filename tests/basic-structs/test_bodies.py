import pytest

from cmbump.structs.bodies import build_object_reference, get_name, get_namespace


def test_name_is_retrieved():
    assert get_name({'metadata': {'name': 'name1'}}) == 'name1'


@pytest.mark.parametrize('body', [{}, {'metadata': {}}, {'metadata': {'name': ''}}])
def test_absent_name_fails(body):
    with pytest.raises(ValueError):
        get_name(body)


def test_namespace_is_retrieved():
    assert get_namespace({'metadata': {'namespace': 'ns1'}}) == 'ns1'
    assert get_namespace({'metadata': {}}) is None


def test_object_reference_of_a_full_body():
    body = {
        'apiVersion': 'v1',
        'kind': 'ConfigMap',
        'metadata': {'name': 'name1', 'namespace': 'ns1', 'uid': 'uid1', 'labels': {'a': 'b'}},
        'data': {'x': 'y'},
    }
    ref = build_object_reference(body)
    assert ref == {'apiVersion': 'v1', 'kind': 'ConfigMap',
                   'name': 'name1', 'namespace': 'ns1', 'uid': 'uid1'}


def test_object_reference_of_an_empty_body():
    ref = build_object_reference({})
    assert ref == {'apiVersion': None, 'kind': None, 'name': None, 'namespace': None, 'uid': None}
