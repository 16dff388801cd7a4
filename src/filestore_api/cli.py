# cli.py
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from filestore_api.settings import get_settings

# Configure logging
logger = logging.getLogger(__name__)


def _build_store():
    from filestore_api.storage import FileStore, StoreConfig

    return FileStore(StoreConfig.from_settings(get_settings()))


@click.group()
def cli():
    """Operator commands for the file store, its API and the migration tools"""
    logging.basicConfig(
        level=get_settings().log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host, port):
    """Run the Files API"""
    import uvicorn

    from filestore_api.main import create_app

    uvicorn.run(create_app(get_settings()), host=host, port=port)


@cli.command("serve-static")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=3000, show_default=True, type=int)
def serve_static(directory, host, port):
    """Serve a built front-end directory, index.html as the default document"""
    import uvicorn

    from filestore_api.main import create_static_app

    click.echo(f"Serving {directory.resolve()} on http://{host}:{port}")
    uvicorn.run(create_static_app(directory), host=host, port=port)


@cli.command("show-config")
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Upload Root: {settings.upload_dir}")
    click.echo(f"  Categories: {', '.join(settings.categories)}")
    click.echo(f"  Default Category: {settings.default_category}")
    click.echo(f"  Max Upload Size: {settings.max_upload_size_bytes / 1024 / 1024:.0f} MB")
    click.echo(f"  Thumbnails: {settings.thumbnail_size}px, quality {settings.thumbnail_quality}")
    click.echo(f"  Batch Concurrency: {settings.batch_concurrency}")
    click.echo(f"  Records DB: {settings.records_db_path}")
    click.echo(f"  Static Dir: {settings.static_dir}")
    click.echo(f"  AWS Region: {settings.aws_region}")
    click.echo(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    click.echo(f"  S3 Bucket: {settings.s3_bucket_name}")


@cli.command("init-storage")
def init_storage():
    """Create the upload root and every category directory"""
    store = _build_store()
    store.ensure_layout()
    click.echo(f"Upload directories ready under {store.root}")


@cli.command()
def stats():
    """Print file counts and sizes per category"""
    result = asyncio.run(_build_store().stats())
    for category in result.categories:
        click.echo(f"  {category.category:<12} {category.file_count:>6} files {category.total_size_bytes:>14} bytes")
    click.echo(f"  {'TOTAL':<12} {result.total_files:>6} files {result.total_size_bytes:>14} bytes")


@cli.command()
@click.argument("output", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--data",
    "data_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file stored as data.json inside the archive (default: {})",
)
def backup(output, data_file):
    """Write a full backup zip of every stored file"""
    from filestore_api.routers.backup import backup_filename
    from filestore_api.storage import ArchiveExporter

    settings = get_settings()
    payload = json.loads(data_file.read_text(encoding="utf-8")) if data_file else {}
    output = output or Path(backup_filename(settings.backup_name_prefix, datetime.now()))

    ArchiveExporter(_build_store()).export_to_path(payload, output)
    click.echo(f"Backup written to {output}")


@cli.command("import-data")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--base-url", default="http://127.0.0.1:8000", show_default=True, help="Record store API")
def import_data(file, base_url):
    """Import an exported JSON data file into the record store"""
    from migration_tools.importer import RecordImporter, load_export

    try:
        data = load_export(file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot read {file}: {e}")

    summary = RecordImporter(base_url).import_all(data)
    for collection, record_id, reason in summary.failures:
        click.echo(f"  [failed] {collection} id={record_id}: {reason}", err=True)
    click.echo("Import finished")
    click.echo(f"  Created: {summary.created}")
    click.echo(f"  Updated: {summary.updated}")
    click.echo(f"  Failed:  {summary.failed}")
    if summary.failed:
        sys.exit(1)


@cli.command("download-manifest")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", default="downloaded_files", show_default=True, type=click.Path(file_okay=False, path_type=Path))
@click.option("--concurrency", type=int, default=None, help="Parallel downloads (default: BATCH_CONCURRENCY)")
def download_manifest(file, output, concurrency):
    """Download every file listed in an exported file manifest"""
    from migration_tools.downloads import ManifestDownloader, load_manifest

    try:
        entries, _ = load_manifest(file)
    except (OSError, ValueError, KeyError) as e:
        raise click.ClickException(f"Cannot read manifest {file}: {e}")

    downloader = ManifestDownloader(output, concurrency=concurrency or get_settings().batch_concurrency)
    report = downloader.run(entries)
    click.echo(f"Output directory: {output.resolve()}")
    click.echo(f"  Completed: {report.completed}")
    click.echo(f"  Skipped:   {report.skipped}")
    click.echo(f"  Failed:    {report.failed}")
    if report.failed:
        sys.exit(1)


@cli.command("download-bucket")
@click.option("--bucket", default=None, help="Bucket name (default: S3_BUCKET_NAME)")
@click.option("--prefix", "prefixes", multiple=True, help="Prefix to mirror; repeatable (default: STORAGE_PREFIXES)")
@click.option("--output", default="storage_files", show_default=True, type=click.Path(file_okay=False, path_type=Path))
@click.option("--concurrency", type=int, default=None, help="Parallel downloads (default: BATCH_CONCURRENCY)")
def download_bucket(bucket, prefixes, output, concurrency):
    """Mirror object-store prefixes to a local directory"""
    from migration_tools.bucket_downloader import BucketDownloader, create_s3_client

    settings = get_settings()
    downloader = BucketDownloader(
        create_s3_client(settings.aws_region, settings.aws_endpoint_url),
        bucket or settings.s3_bucket_name,
        output,
        concurrency=concurrency or settings.batch_concurrency,
    )
    report = downloader.run(prefixes or settings.storage_prefixes)
    click.echo(f"Output directory: {output.resolve()}")
    click.echo(f"  Downloaded: {report.downloaded}")
    click.echo(f"  Skipped:    {report.skipped}")
    click.echo(f"  Failed:     {report.failed}")
    click.echo(f"  Total size: {report.total_bytes / 1024 / 1024:.2f} MB")
    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    cli()
