from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path

import typer

from ias_connector.common.run_id import generate_run_id
from ias_connector.common.sanitize import maskSecret
from ias_connector.common.time import getDurationMs
from ias_connector.config import Settings, load_settings
from ias_connector.directory.scim import USERS_PATH
from ias_connector.directory.user_directory import IasUserDirectory
from ias_connector.errors import AppError
from ias_connector.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson
from ias_connector.infra.http.destinations import DestinationRegistry
from ias_connector.infra.http.scim_client import ScimApiClient
from ias_connector.infra.logging.setup import closeCommandLogger, createCommandLogger, logEvent
from ias_connector.usecases.user_lookup_usecase import UserLookupUseCase

app = typer.Typer(no_args_is_help=True, add_completion=False)
usersApp = typer.Typer(no_args_is_help=True)


def ensureDir(path: str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает безопасную сводку параметров запуска (без секретов) в stderr,
        чтобы stdout оставался чистым JSON.
    """
    typer.echo(
        f"run_id={runId} command={command} destination={settings.destination} "
        f"base_url={settings.base_url} username={settings.username} "
        f"password={maskSecret(settings.password)} sources={sources} log_level={settings.log_level}",
        err=True,
    )


def buildRegistry(settings: Settings, logger: logging.Logger) -> DestinationRegistry:
    return DestinationRegistry.from_settings(settings, clientFactory=ScimApiClient, logger=logger)


def runWithReport(ctx: typer.Context, commandName: str, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - создаёт report.json skeleton
        - запускает асинхронный runner(logger, report, registry) -> exit code
        - гарантирует запись отчёта и закрытие клиентов в finally

    Поведение:
        - AppError из runner логируется, попадает в отчёт, exit code 2.
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()
    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )
    report = createEmptyReport(runId=runId, command=commandName, configSources=sources)
    report.meta.destination = settings.destination

    async def execute() -> int:
        registry = buildRegistry(settings, logger)
        try:
            return await runner(logger, report, registry)
        finally:
            await registry.aclose()

    exitCode = 0
    try:
        logEvent(logger, logging.INFO, runId, "core", "Command started")
        printRunHeader(runId, commandName, settings, sources)
        try:
            exitCode = asyncio.run(execute())
        except AppError as exc:
            report.add_error(exc)
            logEvent(logger, logging.ERROR, runId, exc.category, f"Command failed: {exc}")
            typer.echo(f"ERROR: {exc} (see logs/report)", err=True)
            exitCode = 2
    finally:
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        finalizeReport(report=report, durationMs=durationMs, logFile=logFilePath, reportDir=settings.report_dir)
        reportPath = writeReportJson(report, settings.report_dir, f"report_{commandName}_{runId}")
        logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")
        closeCommandLogger(logger)

    if exitCode:
        raise typer.Exit(code=exitCode)


def buildDirectory(settings: Settings, registry: DestinationRegistry, logger: logging.Logger) -> IasUserDirectory:
    return IasUserDirectory(
        registry,
        destination=settings.destination,
        ttl_seconds=settings.cache_ttl_seconds,
        logger=logger,
    )


def emitJson(data, outputPath: str | None) -> None:
    """JSON-результат в файл (--output) или в stdout."""
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if outputPath:
        Path(outputPath).parent.mkdir(parents=True, exist_ok=True)
        Path(outputPath).write_text(text, encoding="utf-8")
        typer.echo(f"result written: {outputPath}", err=True)
        return
    typer.echo(text)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier. If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for reports."),
    destination: str | None = typer.Option(None, "--destination", help="Destination name (default IAS_DEST)"),
    baseUrl: str | None = typer.Option(None, "--base-url", help="IAS SCIM base URL, e.g. https://tenant.accounts.ondemand.com/service/scim"),
    username: str | None = typer.Option(None, "--username", help="Destination user / client id"),
    password: str | None = typer.Option(None, "--password", help="Destination password (avoid; use env/file)"),
    passwordFile: str | None = typer.Option(None, "--password-file", help="Read destination password from file"),
    timeoutSeconds: float | None = typer.Option(None, "--timeout-seconds", help="API timeout in seconds"),
    retries: int | None = typer.Option(None, "--retries", help="Retry attempts for API calls (default 0)"),
    retryBackoffSeconds: float | None = typer.Option(None, "--retry-backoff-seconds", help="Base backoff for retries"),
    tlsSkipVerify: bool | None = typer.Option(None, "--tls-skip-verify", help="Disable TLS verification"),
    caFile: str | None = typer.Option(None, "--ca-file", help="CA file path"),
    cacheTtlSeconds: float | None = typer.Option(None, "--cache-ttl-seconds", help="Users cache TTL in seconds"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталоги log/report
        - сохраняет всё в ctx.obj для подкоманд
    """
    if passwordFile and not password:
        p = Path(passwordFile)
        if not p.exists() or not p.is_file():
            typer.echo(f"ERROR: password-file not found: {passwordFile}", err=True)
            raise typer.Exit(code=2)
        password = p.read_text(encoding="utf-8").strip()

    cliOverrides = {
        "destination": destination,
        "base_url": baseUrl,
        "username": username,
        "password": password,
        "log_level": logLevel,
        "log_dir": logDir,
        "report_dir": reportDir,
        "timeout_seconds": timeoutSeconds,
        "retries": retries,
        "retry_backoff_seconds": retryBackoffSeconds,
        "tls_skip_verify": tlsSkipVerify,
        "ca_file": caFile,
        "cache_ttl_seconds": cacheTtlSeconds,
    }
    try:
        loaded = load_settings(config_path=config, cli_overrides=cliOverrides)
    except ValueError as exc:
        typer.echo(f"ERROR: invalid settings: {exc}", err=True)
        raise typer.Exit(code=2)

    ensureDir(loaded.settings.log_dir)
    ensureDir(loaded.settings.report_dir)

    ctx.obj = {
        "runId": runId or generate_run_id(),
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("check-api")
def checkApi(ctx: typer.Context):
    """Проверка доступности SCIM /Users для destination."""
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    async def execute(logger, report, registry: DestinationRegistry) -> int:
        client = await registry.connect(settings.destination)
        report.meta.api_base_url = client.baseUrl
        start = time.monotonic()
        data = await client.getJson(USERS_PATH, {"count": 1})
        latency_ms = getDurationMs(start, time.monotonic())
        total = data.get("totalResults") if isinstance(data, dict) else None
        logEvent(
            logger,
            logging.INFO,
            runId,
            "api",
            f"api ok base_url={client.baseUrl} latency_ms={latency_ms} total_results={total}",
        )
        typer.echo(f"api ok latency_ms={latency_ms} total_results={total}")
        return 0

    runWithReport(ctx, "check-api", execute)


@usersApp.command("list")
def usersList(
    ctx: typer.Context,
    forceRefresh: bool = typer.Option(False, "--force-refresh", help="Bypass users cache"),
    output: str | None = typer.Option(None, "--output", help="Write JSON result to file instead of stdout"),
):
    """Печатает всех пользователей каталога (displayName, userName) в JSON."""
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    async def execute(logger, report, registry: DestinationRegistry) -> int:
        usecase = UserLookupUseCase(buildDirectory(settings, registry, logger), logger, runId)
        code, users = await usecase.list_users(forceRefresh, report)
        if code != 0:
            typer.echo("ERROR: users list failed (see logs/report)", err=True)
            return code
        emitJson(users, output)
        return 0

    runWithReport(ctx, "users-list", execute)


@usersApp.command("by-company")
def usersByCompany(
    ctx: typer.Context,
    company: list[str] = typer.Option(..., "--company", help="Company name (customAttribute1); repeatable"),
    forceRefresh: bool = typer.Option(False, "--force-refresh", help="Bypass users cache on first lookup"),
    output: str | None = typer.Option(None, "--output", help="Write JSON result to file instead of stdout"),
):
    """Печатает пользователей указанных компаний в JSON: {company: [{displayName, userName}]}."""
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    async def execute(logger, report, registry: DestinationRegistry) -> int:
        usecase = UserLookupUseCase(buildDirectory(settings, registry, logger), logger, runId)
        code, result = await usecase.users_by_company(company, forceRefresh, report)
        if code != 0:
            typer.echo("ERROR: users lookup failed (see logs/report)", err=True)
            return code
        emitJson(result, output)
        return 0

    runWithReport(ctx, "users-by-company", execute)


app.add_typer(usersApp, name="users")
