import httpx
import pytest

from conftest import as_user
from feedback_app.errors import UpstreamError, ValidationError
from feedback_app.services import sheet_service
from feedback_app.services.sheet_service import csv_export_url, fetch_sheet_csv

SHEET_ID = '1WstDNoS9sHgTKeE2CqmRO5'
CSV_URL = f'https://docs.google.com/spreadsheets/d/{SHEET_ID}/export?format=csv&gid=0'
CSV_BODY = 'name,email,semester,division\nAsha Rao,asha@college.edu,5,A\n'


def _mock_client_factory(transport, original_cls):
    def _factory(*args, **kwargs):
        kwargs['transport'] = transport
        return original_cls(*args, **kwargs)

    return _factory


class TestCsvExportUrl:
    def test_edit_link_defaults_to_first_tab(self):
        url = f'https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit'
        assert csv_export_url(url) == CSV_URL

    def test_gid_is_kept(self):
        url = f'https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit?usp=sharing&gid=42#gid=42'
        assert csv_export_url(url).endswith('export?format=csv&gid=42')

    @pytest.mark.parametrize('url', [
        'https://example.com/spreadsheets/d/abc/edit',
        'https://docs.google.com.evil.io/spreadsheets/d/abc/edit',
    ])
    def test_other_hosts_are_rejected(self, url):
        with pytest.raises(ValidationError) as excinfo:
            csv_export_url(url)
        assert 'docs.google.com' in excinfo.value.message

    @pytest.mark.parametrize('url', ['not a url', 'https://docs.google.com/document/d/abc/edit'])
    def test_invalid_links(self, url):
        with pytest.raises(ValidationError):
            csv_export_url(url)


class TestFetchSheetCsv:
    def test_success(self):
        def handler(request):
            assert request.url.params['format'] == 'csv'
            return httpx.Response(200, text=CSV_BODY)

        assert fetch_sheet_csv(CSV_URL, transport=httpx.MockTransport(handler)) == CSV_BODY

    def test_follows_redirects(self):
        def handler(request):
            if request.url.host == 'docs.google.com':
                return httpx.Response(307, headers={'Location': 'https://doc-0s.googleusercontent.com/x'})
            return httpx.Response(200, text=CSV_BODY)

        assert fetch_sheet_csv(CSV_URL, transport=httpx.MockTransport(handler)) == CSV_BODY

    def test_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text='boom'))
        with pytest.raises(UpstreamError) as excinfo:
            fetch_sheet_csv(CSV_URL, transport=transport)
        assert excinfo.value.status_code == 502
        assert excinfo.value.message == 'Failed to fetch Google Sheet data'

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        with pytest.raises(UpstreamError):
            fetch_sheet_csv(CSV_URL, transport=httpx.MockTransport(handler))

    def test_empty_sheet(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text='  \n'))
        with pytest.raises(ValidationError) as excinfo:
            fetch_sheet_csv(CSV_URL, transport=transport)
        assert excinfo.value.message == 'Google Sheet is empty or returned no data'


class TestGoogleSheetRoute:
    def test_proxies_requested_sheet(self, client, admin_headers, monkeypatch):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, text=CSV_BODY)

        monkeypatch.setattr(sheet_service.httpx, 'Client',
                            _mock_client_factory(httpx.MockTransport(handler), httpx.Client))

        resp = client.get(f'/api/admin/google-sheet?url=https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit',
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {'csv': CSV_BODY}
        assert requested == [CSV_URL]

    def test_upstream_failure_is_502(self, client, admin_headers, monkeypatch):
        transport = httpx.MockTransport(lambda request: httpx.Response(403))
        monkeypatch.setattr(sheet_service.httpx, 'Client', _mock_client_factory(transport, httpx.Client))

        resp = client.get('/api/admin/google-sheet', headers=admin_headers)
        assert resp.status_code == 502
        assert resp.get_json() == {'error': 'Failed to fetch Google Sheet data'}

    def test_rejects_foreign_host(self, client, admin_headers):
        resp = client.get('/api/admin/google-sheet?url=https://example.com/data.csv', headers=admin_headers)
        assert resp.status_code == 400

    def test_admin_only(self, client, make_student):
        student = make_student()
        resp = client.get('/api/admin/google-sheet', headers=as_user(student['email']))
        assert resp.status_code == 403
