"""Unit tests for ControllerClient."""

import json
from unittest.mock import patch

import httpx
import pytest

from cli.controller_client import ControllerClient

WEEK = {
    'week_id': '2f1c0b9e-5a44-4c0e-9f0a-0e1c7d3f9a10',
    'week_number': 3,
    'summary': 'Beach clean-up',
    'photos': ['photo-1', 'photo-2'],
    'report_file_id': 'report-1',
    'created_at': '2025-03-01T10:00:00+00:00',
    'updated_at': '2025-03-01T10:00:00+00:00',
}

AUDIT = {
    'generated_at': '2025-03-01T10:00:00+00:00',
    'health_score': 50,
    'stats': {
        'total_files': 1,
        'valid_files': 1,
        'incomplete_files': 0,
        'stray_chunk_sets': 0,
        'orphaned_files': 0,
        'dangling_references': 1,
        'total_weeks': 1,
        'valid_weeks': 0,
        'invalid_weeks': 1,
    },
    'incomplete_files': [],
    'stray_chunk_sets': [],
    'orphaned_files': [],
    'dangling_references': {'3': ['photo-1']},
    'invalid_weeks': [3],
    'warnings': [{'kind': 'dangling-reference', 'message': 'Week 3 references missing photo photo-1', 'details': {}}],
    'actions': [],
}


def make_client(config, handler) -> ControllerClient:
    client = ControllerClient(config)
    client.session = httpx.Client(transport=httpx.MockTransport(handler), base_url='http://test')
    return client


@pytest.fixture
def uploads(temp_config):
    """Uploads directory with two photos and a report."""
    uploads_dir = temp_config.get_uploads_dir()
    uploads_dir.mkdir(parents=True)
    (uploads_dir / 'a.jpg').write_bytes(b'jpeg-a')
    (uploads_dir / 'b.jpg').write_bytes(b'jpeg-b')
    (uploads_dir / 'week3.pdf').write_bytes(b'%PDF-1.4')
    return uploads_dir


def test_requests_carry_identity_headers(temp_config):
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json={'count': 0, 'weeks': []})

    client = make_client(temp_config, handler)
    client.list_weeks()

    assert seen['x-caller-id'] == 'tester'
    assert seen['x-request-id'] == client.request_id


def test_list_weeks_empty(temp_config):
    client = make_client(temp_config, lambda request: httpx.Response(200, json={'count': 0, 'weeks': []}))

    assert client.list_weeks() == "No weeks found."


def test_list_weeks_passes_order(temp_config):
    def handler(request):
        assert request.url.params['order'] == 'desc'
        return httpx.Response(200, json={'count': 1, 'weeks': [WEEK]})

    result = make_client(temp_config, handler).list_weeks('desc')

    assert 'Found 1 week(s)' in result
    assert 'Beach clean-up' in result


def test_get_week(temp_config):
    def handler(request):
        assert request.url.path == '/weeks/number/3'
        return httpx.Response(200, json=WEEK)

    result = make_client(temp_config, handler).get_week(3)

    assert result.startswith('Week 3: Beach clean-up')
    assert 'Photos (2):' in result
    assert 'Report: report-1' in result


def test_get_week_not_found(temp_config):
    def handler(request):
        return httpx.Response(404, json={'detail': 'Week 9 not found', 'code': 'NOT_FOUND'})

    assert make_client(temp_config, handler).get_week(9) == 'Error: Not found: Week 9 not found'


def test_upload_week_success(temp_config, uploads):
    captured = {}

    def handler(request):
        captured['method'] = request.method
        captured['path'] = request.url.path
        captured['body'] = request.content
        return httpx.Response(201, json=WEEK)

    client = make_client(temp_config, handler)
    result = client.upload_week(3, 'Beach clean-up', ['uploads/a.jpg', 'uploads/b.jpg'], 'uploads/week3.pdf')

    assert 'Created' in result
    assert 'Week 3: Beach clean-up' in result
    assert captured['method'] == 'POST'
    assert captured['path'] == '/weeks'
    body = captured['body']
    assert b'name="weekNumber"' in body
    assert body.count(b'name="photos"') == 2
    assert b'name="reportPdf"; filename="week3.pdf"' in body
    assert b'Content-Type: application/pdf' in body


def test_upload_week_requires_uploads_prefix(temp_config, uploads):
    client = make_client(temp_config, lambda request: httpx.Response(500))

    result = client.upload_week(3, 'Beach', ['a.jpg'])

    assert "must start with 'uploads/'" in result


def test_upload_week_missing_file(temp_config, uploads):
    client = make_client(temp_config, lambda request: httpx.Response(500))

    assert 'File not found' in client.upload_week(3, 'Beach', ['uploads/missing.jpg'])


def test_upload_week_rejects_path_escape(temp_config, uploads):
    client = make_client(temp_config, lambda request: httpx.Response(500))

    assert 'outside uploads directory' in client.upload_week(3, 'Beach', ['uploads/../../etc/passwd'])


def test_upload_week_duplicate(temp_config, uploads):
    def handler(request):
        return httpx.Response(409, json={'detail': 'Week 3 already exists', 'code': 'DUPLICATE'})

    result = make_client(temp_config, handler).upload_week(3, 'Beach', ['uploads/a.jpg'])

    assert result == 'Error creating week 3: Already exists: Week 3 already exists'


def test_upload_week_is_not_retried(temp_config, uploads):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={'detail': 'down', 'code': 'STORAGE_UNAVAILABLE'})

    result = make_client(temp_config, handler).upload_week(3, 'Beach', ['uploads/a.jpg'])

    assert len(calls) == 1
    assert 'Storage is currently unavailable' in result


def test_delete_week_with_failures(temp_config):
    def handler(request):
        assert request.method == 'DELETE'
        return httpx.Response(200, json={
            'message': 'Week 3 deleted with 1 file cleanup failures',
            'week_id': WEEK['week_id'],
            'week_number': 3,
            'summary': 'Beach clean-up',
            'removed': [{'file_id': 'photo-2', 'role': 'photo', 'removed': True, 'error': None}],
            'failed': [{'file_id': 'photo-1', 'role': 'photo', 'removed': False, 'error': 'file record not found'}],
            'warnings': [],
        })

    result = make_client(temp_config, handler).delete_week(3)

    assert 'Week 3 deleted with 1 file cleanup failures' in result
    assert 'Removed files: 1' in result
    assert 'photo photo-1: file record not found' in result


def test_download_range(temp_config):
    def handler(request):
        assert request.headers['range'] == 'bytes=0-3'
        return httpx.Response(
            206,
            content=b'%PDF',
            headers={
                'Content-Disposition': 'inline; filename="week3.pdf"',
                'Content-Range': 'bytes 0-3/1048576',
                'Content-Length': '4',
            },
        )

    result = make_client(temp_config, handler).download('report-1', byte_range='0-3')

    saved = temp_config.get_downloads_dir() / 'week3.pdf'
    assert saved.read_bytes() == b'%PDF'
    assert 'Downloaded: week3.pdf' in result
    assert 'Range: bytes 0-3/1048576 (4 B of 1.00 MiB)' in result


def test_download_to_output_path(temp_config):
    def handler(request):
        return httpx.Response(200, content=b'jpeg', headers={'Content-Disposition': 'inline; filename="a.jpg"'})

    result = make_client(temp_config, handler).download('photo-1', 'downloads/copy.jpg')

    assert (temp_config.get_downloads_dir() / 'copy.jpg').read_bytes() == b'jpeg'
    assert 'Saved to:' in result


def test_download_output_requires_prefix(temp_config):
    def handler(request):
        return httpx.Response(200, content=b'jpeg', headers={'Content-Disposition': 'inline; filename="a.jpg"'})

    result = make_client(temp_config, handler).download('photo-1', 'copy.jpg')

    assert "must start with 'downloads/'" in result


def test_download_range_not_satisfiable(temp_config):
    def handler(request):
        return httpx.Response(
            416,
            json={'detail': 'Requested range not satisfiable', 'code': 'RANGE_NOT_SATISFIABLE'},
            headers={'Content-Range': 'bytes */100'},
        )

    result = make_client(temp_config, handler).download('photo-1', byte_range='500-600')

    assert result.startswith('Error: Range not satisfiable')
    assert result.endswith('(file is 100 bytes, 100 B)')


def test_audit(temp_config):
    result = make_client(temp_config, lambda request: httpx.Response(200, json=AUDIT)).audit()

    assert 'Health score: 50%' in result
    assert '1 dangling references' in result
    assert '[dangling-reference]' in result


def test_repair_sends_flags(temp_config):
    def handler(request):
        assert request.url.path == '/admin/repair'
        assert json.loads(request.content) == {"strip_dangling": True, "delete_orphans": False}
        return httpx.Response(200, json=dict(AUDIT, actions=['stripped 1 dangling references from week 3']))

    result = make_client(temp_config, handler).repair(strip_dangling=True)

    assert 'Actions (1):' in result
    assert 'No repairs performed' not in result


def test_health_ready(temp_config):
    def handler(request):
        return httpx.Response(200, json={
            'ready': True, 'database': 'ok', 'bucket': 'uploads',
            'counts': {'weeks': 2, 'files': 5, 'chunks': 9}, 'sweep_running': True,
        })

    result = make_client(temp_config, handler).health()

    assert 'Service ready (bucket: uploads)' in result
    assert 'Weeks: 2, files: 5, chunks: 9' in result


def test_health_not_ready(temp_config):
    def handler(request):
        return httpx.Response(503, json={'ready': False, 'database': 'error: disk I/O error'})

    assert make_client(temp_config, handler).health() == 'Service not ready: error: disk I/O error'


def test_retries_server_errors(temp_config):
    responses = [
        httpx.Response(500, json={'detail': 'boom', 'code': 'INTERNAL_ERROR'}),
        httpx.Response(200, json={'count': 0, 'weeks': []}),
    ]

    with patch('cli.controller_client.time.sleep') as sleep:
        result = make_client(temp_config, lambda request: responses.pop(0)).list_weeks()

    assert result == 'No weeks found.'
    sleep.assert_called_once_with(1)


def test_connection_error(temp_config):
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    with patch('cli.controller_client.time.sleep'):
        result = make_client(temp_config, handler).list_weeks()

    assert result == 'Error: Cannot connect to weekvault server. Is it running?'
