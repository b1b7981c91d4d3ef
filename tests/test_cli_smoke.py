import json
from pathlib import Path

import httpx
from typer.testing import CliRunner

from ias_connector.cli import app
from scim_fakes import make_user, page

runner = CliRunner()

CATALOG = [make_user("alice", "ACME"), make_user("bob", "Globex"), make_user("carol", "ACME")]


def patch_client_with_transport(monkeypatch, transport: httpx.AsyncBaseTransport):
    import ias_connector.cli as cli_module
    from ias_connector.infra.http.scim_client import ScimApiClient

    def factory(*args, **kwargs):
        kwargs["transport"] = transport
        return ScimApiClient(*args, **kwargs)

    monkeypatch.setattr(cli_module, "ScimApiClient", factory)


def base_args(tmp_path: Path, runId: str) -> list[str]:
    return [
        "--log-dir",
        str(tmp_path / "logs"),
        "--report-dir",
        str(tmp_path / "reports"),
        "--base-url",
        "https://ias.local/service/scim",
        "--username",
        "client",
        "--password",
        "secret",
        "--run-id",
        runId,
    ]


def read_report(tmp_path: Path, command: str, runId: str) -> dict:
    path = tmp_path / "reports" / f"report_{command}_{runId}.json"
    assert path.exists()
    return json.loads(path.read_text(encoding="utf-8"))


def test_help_shows_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "check-api" in result.stdout
    assert "users" in result.stdout


def test_users_by_company_uses_one_fetch_for_all_companies(monkeypatch, tmp_path: Path):
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        assert request.url.path == "/service/scim/Users"
        return page(CATALOG)

    patch_client_with_transport(monkeypatch, httpx.MockTransport(responder))
    output = tmp_path / "out" / "result.json"

    result = runner.invoke(
        app,
        base_args(tmp_path, "by-company")
        + ["users", "by-company", "--company", "ACME", "--company", "Globex", "--output", str(output)],
    )

    assert result.exit_code == 0
    assert calls["count"] == 1
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data == {
        "ACME": [
            {"displayName": "User alice", "userName": "alice"},
            {"displayName": "User carol", "userName": "carol"},
        ],
        "Globex": [{"displayName": "User bob", "userName": "bob"}],
    }
    report = read_report(tmp_path, "users-by-company", "by-company")
    assert report["status"] == "SUCCESS"
    assert report["summary"]["users_total"] == 3
    assert report["summary"]["requests_total"] == 1
    assert report["summary"]["cache_hits"] == 1
    assert report["summary"]["companies"] == {"ACME": 2, "Globex": 1}
    assert report["context"]["fetches"][0]["strategy"] == "cursor"
    assert (tmp_path / "logs" / "users-by-company_by-company.log").exists()


def test_users_list_writes_lite_users(monkeypatch, tmp_path: Path):
    patch_client_with_transport(monkeypatch, httpx.MockTransport(lambda request: page(CATALOG)))
    output = tmp_path / "users.json"

    result = runner.invoke(app, base_args(tmp_path, "list") + ["users", "list", "--output", str(output)])

    assert result.exit_code == 0
    data = json.loads(output.read_text(encoding="utf-8"))
    assert [u["userName"] for u in data] == ["alice", "bob", "carol"]
    assert read_report(tmp_path, "users-list", "list")["summary"]["users_total"] == 3


def test_users_list_api_failure_exit_code_2(monkeypatch, tmp_path: Path):
    patch_client_with_transport(monkeypatch, httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized")))

    result = runner.invoke(app, base_args(tmp_path, "list-401") + ["users", "list"])

    assert result.exit_code == 2
    report = read_report(tmp_path, "users-list", "list-401")
    assert report["status"] == "FAILED"
    assert report["errors"][0]["code"] == "HTTP_401"


def test_check_api_ok(monkeypatch, tmp_path: Path):
    def responder(request: httpx.Request) -> httpx.Response:
        assert request.url.params["count"] == "1"
        return page([make_user("alice", "ACME")], total=42)

    patch_client_with_transport(monkeypatch, httpx.MockTransport(responder))

    result = runner.invoke(app, base_args(tmp_path, "check-ok") + ["check-api"])

    assert result.exit_code == 0
    report = read_report(tmp_path, "check-api", "check-ok")
    assert report["meta"]["api_base_url"] == "https://ias.local/service/scim"


def test_check_api_without_destination_config(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("IAS_BASE_URL", raising=False)

    result = runner.invoke(
        app,
        ["--log-dir", str(tmp_path / "logs"), "--report-dir", str(tmp_path / "reports"), "--run-id", "no-dest", "check-api"],
    )

    assert result.exit_code == 2
    report = read_report(tmp_path, "check-api", "no-dest")
    assert report["errors"][0]["code"] == "DESTINATION_NOT_FOUND"
