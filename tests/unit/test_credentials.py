from __future__ import annotations

import threading
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from fcm_relay.notifications.contracts import AccessToken, AuthFailureError, CredentialErrorKind, CredentialIOError, CredentialMissingFieldError, CredentialParseError
from fcm_relay.notifications.credentials import FCM_SCOPE, CachedTokenProvider, CredentialConfig, ServiceAccountCredentialResolver, strip_token_type


class _FakeCredentials:
  def __init__(self, token: str | None, expiry: datetime | None = None, error: Exception | None = None) -> None:
    self.token = token
    self.expiry = expiry
    self._error = error
    self.refresh_calls = 0

  def refresh(self, request) -> None:
    self.refresh_calls += 1
    if self._error is not None:
      raise self._error


def _install_fake_credentials(monkeypatch, credentials: _FakeCredentials) -> dict:
  call: dict = {}

  def _from_file(path, scopes=None):
    call["path"] = path
    call["scopes"] = scopes
    return credentials

  fake_module = SimpleNamespace(Credentials=SimpleNamespace(from_service_account_file=_from_file))
  monkeypatch.setattr("fcm_relay.notifications.credentials.service_account", fake_module)
  return call


def _resolver(path) -> ServiceAccountCredentialResolver:
  return ServiceAccountCredentialResolver(CredentialConfig(path=str(path)), request_factory=lambda: object())


def test_resolve_project_id_returns_value(service_account_file):
  assert _resolver(service_account_file).resolve_project_id() == "p1"


def test_resolve_project_id_missing_field(tmp_path):
  path = tmp_path / "sa.json"
  path.write_text('{"client_email": "relay@example.com"}', encoding="utf-8")

  with pytest.raises(CredentialMissingFieldError) as excinfo:
    _resolver(path).resolve_project_id()

  assert excinfo.value.kind is CredentialErrorKind.MISSING_FIELD


@pytest.mark.parametrize("value", [123, None, "   "])
def test_resolve_project_id_rejects_non_string_or_blank(tmp_path, make_service_account, value):
  path = make_service_account(tmp_path / "sa.json", project_id=value)

  with pytest.raises(CredentialMissingFieldError):
    _resolver(path).resolve_project_id()


@pytest.mark.parametrize("value", ["p\x00x", "a/b", "a?b", "proj 1", "../other", "-leading"])
def test_resolve_project_id_rejects_values_unsafe_in_url_path(tmp_path, make_service_account, value):
  path = make_service_account(tmp_path / "sa.json", project_id=value)

  with pytest.raises(CredentialMissingFieldError) as excinfo:
    _resolver(path).resolve_project_id()

  assert "not a valid project identifier" in str(excinfo.value)


@pytest.mark.parametrize("value", ["proj-123", "example.com:proj", "my_project.v2"])
def test_resolve_project_id_accepts_gcp_id_forms(tmp_path, make_service_account, value):
  path = make_service_account(tmp_path / "sa.json", project_id=value)

  assert _resolver(path).resolve_project_id() == value


def test_resolve_project_id_missing_file(tmp_path):
  with pytest.raises(CredentialIOError) as excinfo:
    _resolver(tmp_path / "does-not-exist.json").resolve_project_id()

  assert excinfo.value.kind is CredentialErrorKind.IO_FAILURE


def test_resolve_project_id_invalid_json(tmp_path):
  path = tmp_path / "sa.json"
  path.write_text("{not json", encoding="utf-8")

  with pytest.raises(CredentialParseError) as excinfo:
    _resolver(path).resolve_project_id()

  assert excinfo.value.kind is CredentialErrorKind.PARSE_FAILURE


def test_resolve_project_id_non_utf8(tmp_path):
  path = tmp_path / "sa.json"
  path.write_bytes(b"\xff\xfe\x00garbage")

  with pytest.raises(CredentialParseError):
    _resolver(path).resolve_project_id()


def test_resolve_project_id_rejects_json_array(tmp_path):
  path = tmp_path / "sa.json"
  path.write_text('["p1"]', encoding="utf-8")

  with pytest.raises(CredentialParseError):
    _resolver(path).resolve_project_id()


def test_resolve_project_id_rereads_file_each_call(tmp_path, make_service_account):
  path = make_service_account(tmp_path / "sa.json", project_id="first")
  resolver = _resolver(path)
  assert resolver.resolve_project_id() == "first"

  make_service_account(path, project_id="second")
  assert resolver.resolve_project_id() == "second"


@pytest.mark.parametrize(("raw", "expected"), [("Bearer abc", "abc"), ("abc", "abc"), ("  Bearer  xyz ", "xyz")])
def test_strip_token_type(raw, expected):
  assert strip_token_type(raw) == expected


def test_resolve_access_token_uses_scope_and_strips_prefix(monkeypatch, service_account_file):
  credentials = _FakeCredentials(token="Bearer ya29.token")
  call = _install_fake_credentials(monkeypatch, credentials)

  token = _resolver(service_account_file).resolve_access_token()

  assert token == "ya29.token"
  assert call["path"] == str(service_account_file)
  assert call["scopes"] == [FCM_SCOPE]
  assert credentials.refresh_calls == 1


def test_resolve_access_token_wraps_exchange_failure(monkeypatch, service_account_file):
  _install_fake_credentials(monkeypatch, _FakeCredentials(token=None, error=RuntimeError("invalid_grant")))

  with pytest.raises(AuthFailureError) as excinfo:
    _resolver(service_account_file).resolve_access_token()

  assert excinfo.value.kind is CredentialErrorKind.AUTH_FAILURE
  assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_resolve_access_token_rejects_empty_token(monkeypatch, service_account_file):
  _install_fake_credentials(monkeypatch, _FakeCredentials(token=""))

  with pytest.raises(AuthFailureError):
    _resolver(service_account_file).resolve_access_token()


def test_resolve_access_token_requests_fresh_token_every_call(monkeypatch, service_account_file):
  credentials = _FakeCredentials(token="tok")
  _install_fake_credentials(monkeypatch, credentials)
  resolver = _resolver(service_account_file)

  resolver.resolve_access_token()
  resolver.resolve_access_token()

  assert credentials.refresh_calls == 2


class _CountingResolver:
  def __init__(self, expiry: datetime | None) -> None:
    self.calls = 0
    self._expiry = expiry
    self._lock = threading.Lock()

  def fetch_access_token(self, scope: str = FCM_SCOPE) -> AccessToken:
    with self._lock:
      self.calls += 1
      return AccessToken(token=f"tok-{self.calls}", expiry=self._expiry)


def test_cached_token_provider_reuses_valid_token():
  now = datetime(2026, 1, 1, 12, 0, 0)
  resolver = _CountingResolver(expiry=now + timedelta(hours=1))
  provider = CachedTokenProvider(resolver, clock=lambda: now)

  assert provider.resolve_access_token() == "tok-1"
  assert provider.resolve_access_token() == "tok-1"
  assert resolver.calls == 1


def test_cached_token_provider_refreshes_near_expiry():
  clock = {"now": datetime(2026, 1, 1, 12, 0, 0)}
  resolver = _CountingResolver(expiry=clock["now"] + timedelta(minutes=10))
  provider = CachedTokenProvider(resolver, refresh_margin_seconds=300, clock=lambda: clock["now"])

  assert provider.resolve_access_token() == "tok-1"
  clock["now"] += timedelta(minutes=6)
  assert provider.resolve_access_token() == "tok-2"


def test_cached_token_provider_does_not_cache_tokens_without_expiry():
  resolver = _CountingResolver(expiry=None)
  provider = CachedTokenProvider(resolver)

  provider.resolve_access_token()
  provider.resolve_access_token()

  assert resolver.calls == 2


def test_cached_token_provider_single_refresh_under_contention():
  now = datetime(2026, 1, 1, 12, 0, 0)
  resolver = _CountingResolver(expiry=now + timedelta(hours=1))
  provider = CachedTokenProvider(resolver, clock=lambda: now)
  results: list[str] = []

  threads = [threading.Thread(target=lambda: results.append(provider.resolve_access_token())) for _ in range(8)]
  for thread in threads:
    thread.start()
  for thread in threads:
    thread.join()

  assert resolver.calls == 1
  assert set(results) == {"tok-1"}


def test_cached_token_provider_invalidate_forces_refresh():
  now = datetime(2026, 1, 1, 12, 0, 0)
  resolver = _CountingResolver(expiry=now + timedelta(hours=1))
  provider = CachedTokenProvider(resolver, clock=lambda: now)

  provider.resolve_access_token()
  provider.invalidate()
  provider.resolve_access_token()

  assert resolver.calls == 2
