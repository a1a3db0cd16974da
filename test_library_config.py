"""
config.json loading: defaults, legacy shapes, round trip
"""

import json

import pytest

from library_config import DEFAULT_PHOTOS_DIRECTORIES, get_scan_roots, load_config, save_config


def write(path, payload):
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return str(path)


def test_missing_file_uses_defaults(tmp_path):
    assert get_scan_roots(str(tmp_path / 'config.json')) == DEFAULT_PHOTOS_DIRECTORIES


def test_unreadable_json_uses_defaults(tmp_path, caplog):
    path = write(tmp_path / 'config.json', '{not json')

    with caplog.at_level('ERROR', logger='errors'):
        assert get_scan_roots(path) == DEFAULT_PHOTOS_DIRECTORIES

    assert 'config.json' in caplog.text


@pytest.mark.parametrize('payload, expected', [
    ({'photosDirectories': ['/a', './b']}, ['/a', './b']),
    ({'photosDirectories': '/single'}, ['/single']),
    ({'photosDirectory': '/legacy'}, ['/legacy']),
    ({'photosDirectories': ['/a', '', 3, '  ']}, ['/a']),
    ({'photosDirectories': []}, []),
    ({'somethingElse': True}, DEFAULT_PHOTOS_DIRECTORIES),
])
def test_config_shapes(tmp_path, payload, expected):
    assert get_scan_roots(write(tmp_path / 'config.json', payload)) == expected


def test_roots_are_re_read_on_every_call(tmp_path):
    path = write(tmp_path / 'config.json', {'photosDirectories': ['/first']})
    assert get_scan_roots(path) == ['/first']

    save_config(path, ['/second', '/third'])

    assert get_scan_roots(path) == ['/second', '/third']
    assert load_config(path) == {'photosDirectories': ['/second', '/third']}
