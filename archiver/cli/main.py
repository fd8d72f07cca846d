#!/usr/bin/env python
"""
Archiver CLI: purge, zip and upload a dump directory once a day.

Every option can also come from the environment or a .env file using the
same lowercase name (endpoint, accesskeyid, ...). Flags win.

Usage:
    archiver run  --endpoint s3.example.com --bucket dumps --sourcedir /var/dumps ...
    archiver once --env-file /etc/archiver.env
    archiver check
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from archiver.lib.config import ArchiverConfig, load_config
from archiver.lib.errors import ConfigError
from archiver.lib.logging_config import setup_logging
from archiver.services.pipeline import STAGES
from archiver.worker.scheduler import DailyScheduler

app = typer.Typer(help="Retention-based archival of a dump directory to S3-compatible storage")
console = Console()

SERVICE_NAME = "archiver"

EnvFileOpt = typer.Option(Path(".env"), "--env-file", help="dotenv file read before the environment")
EndpointOpt = typer.Option(None, "--endpoint", help="S3 or S3-compatible endpoint")
AccessKeyOpt = typer.Option(None, "--accesskeyid", help="S3 access key ID")
SecretKeyOpt = typer.Option(None, "--secretaccesskey", help="S3 secret access key")
BucketOpt = typer.Option(None, "--bucket", help="S3 or S3-compatible bucket name")
SourceDirOpt = typer.Option(None, "--sourcedir", "--dir", help="Source directory to archive")
LogLevelOpt = typer.Option(None, "--loglevel", help="Log level (debug, info, warn, error, fatal)")
ZipfileOpt = typer.Option(None, "--zipfile", help="Archive base name (default: dump)")
OutputDirOpt = typer.Option(None, "--outputdir", help="Where archives are written (default: parent of sourcedir)")
SecureOpt = typer.Option(None, "--secure/--insecure", help="Use TLS to reach the endpoint (default: secure)")
UploadTimeoutOpt = typer.Option(None, "--uploadtimeout", help="Upload timeout in seconds (default: 300)")
RunAtOpt = typer.Option(None, "--runat", help="Daily run time HH:MM[:SS] (default: 23:50:00)")


def _load(env_file: Path, **flags) -> ArchiverConfig:
    """Resolve config or exit 1 listing every problem."""
    try:
        return load_config(flags=flags, env_file=env_file)
    except ConfigError as e:
        console.print("[red]Invalid configuration:[/]")
        for problem in e.problems:
            console.print(f"  [red]- {problem}[/]")
        raise typer.Exit(1)


def _flags(endpoint, accesskeyid, secretaccesskey, bucket, sourcedir, loglevel,
           zipfile, outputdir, secure, uploadtimeout, runat) -> dict:
    return {
        "endpoint": endpoint,
        "accesskeyid": accesskeyid,
        "secretaccesskey": secretaccesskey,
        "bucket": bucket,
        "sourcedir": sourcedir,
        "loglevel": loglevel,
        "zipfile": zipfile,
        "outputdir": outputdir,
        "secure": secure,
        "uploadtimeout": uploadtimeout,
        "runat": runat,
    }


@app.command()
def run(
    env_file: Path = EnvFileOpt,
    endpoint: Optional[str] = EndpointOpt,
    accesskeyid: Optional[str] = AccessKeyOpt,
    secretaccesskey: Optional[str] = SecretKeyOpt,
    bucket: Optional[str] = BucketOpt,
    sourcedir: Optional[str] = SourceDirOpt,
    loglevel: Optional[str] = LogLevelOpt,
    zipfile: Optional[str] = ZipfileOpt,
    outputdir: Optional[str] = OutputDirOpt,
    secure: Optional[bool] = SecureOpt,
    uploadtimeout: Optional[float] = UploadTimeoutOpt,
    runat: Optional[str] = RunAtOpt,
):
    """Start the daily scheduler and block until SIGINT/SIGTERM."""
    config = _load(env_file, **_flags(endpoint, accesskeyid, secretaccesskey, bucket, sourcedir,
                                      loglevel, zipfile, outputdir, secure, uploadtimeout, runat))
    run_filter = setup_logging(SERVICE_NAME, config.logging_level)
    DailyScheduler(config, run_filter=run_filter).serve_forever()


@app.command()
def once(
    env_file: Path = EnvFileOpt,
    endpoint: Optional[str] = EndpointOpt,
    accesskeyid: Optional[str] = AccessKeyOpt,
    secretaccesskey: Optional[str] = SecretKeyOpt,
    bucket: Optional[str] = BucketOpt,
    sourcedir: Optional[str] = SourceDirOpt,
    loglevel: Optional[str] = LogLevelOpt,
    zipfile: Optional[str] = ZipfileOpt,
    outputdir: Optional[str] = OutputDirOpt,
    secure: Optional[bool] = SecureOpt,
    uploadtimeout: Optional[float] = UploadTimeoutOpt,
    runat: Optional[str] = RunAtOpt,
):
    """Run purge, archive and upload once, right now."""
    config = _load(env_file, **_flags(endpoint, accesskeyid, secretaccesskey, bucket, sourcedir,
                                      loglevel, zipfile, outputdir, secure, uploadtimeout, runat))
    run_filter = setup_logging(SERVICE_NAME, config.logging_level)
    ctx = DailyScheduler(config, run_filter=run_filter).run_once()
    if ctx is None:
        raise typer.Exit(1)

    table = Table(title=f"Run {ctx.run_id}")
    table.add_column("Stage", style="bold")
    table.add_column("Status")
    table.add_column("Detail")
    for stage in STAGES:
        result = ctx.get_result(stage)
        if result is None:
            table.add_row(stage, "[yellow]not run[/]", "")
        elif result.success:
            table.add_row(stage, "[green]ok[/]", f"{result.duration_ms:.0f} ms")
        else:
            table.add_row(stage, "[red]failed[/]", result.error or "")
    console.print(table)

    if not ctx.succeeded:
        raise typer.Exit(1)


@app.command()
def check(
    env_file: Path = EnvFileOpt,
    endpoint: Optional[str] = EndpointOpt,
    accesskeyid: Optional[str] = AccessKeyOpt,
    secretaccesskey: Optional[str] = SecretKeyOpt,
    bucket: Optional[str] = BucketOpt,
    sourcedir: Optional[str] = SourceDirOpt,
    loglevel: Optional[str] = LogLevelOpt,
    zipfile: Optional[str] = ZipfileOpt,
    outputdir: Optional[str] = OutputDirOpt,
    secure: Optional[bool] = SecureOpt,
    uploadtimeout: Optional[float] = UploadTimeoutOpt,
    runat: Optional[str] = RunAtOpt,
):
    """Validate the configuration and show the resolved settings."""
    config = _load(env_file, **_flags(endpoint, accesskeyid, secretaccesskey, bucket, sourcedir,
                                      loglevel, zipfile, outputdir, secure, uploadtimeout, runat))

    table = Table(title="Archiver Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("endpoint", config.endpoint)
    table.add_row("bucket", config.bucket)
    table.add_row("accesskeyid", config.access_key_id)
    table.add_row("secretaccesskey", "********")
    table.add_row("sourcedir", str(config.source_dir))
    table.add_row("outputdir", str(config.archive_dir))
    table.add_row("zipfile", config.zipfile)
    table.add_row("secure", str(config.secure))
    table.add_row("uploadtimeout", f"{config.upload_timeout:g}s")
    table.add_row("runat", config.run_at.isoformat())
    table.add_row("loglevel", config.log_level)
    console.print(table)


if __name__ == "__main__":
    app()
