# cli.py
import click
import logging
from file_gateway.settings import get_settings

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """CLI commands for running and inspecting the file gateway"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Deployment Mode: {settings.deployment_mode}")
    click.echo(f"  Storage: {'S3 bucket ' + settings.s3_bucket_name if settings.uses_s3 else settings.storage_dir}")
    click.echo(f"  AWS Region: {settings.aws_region}")
    click.echo(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    click.echo(f"  Public Server URL: {settings.public_server_url}")
    click.echo(f"  Default App ID: {settings.app_id}")
    click.echo(f"  Master Key Set: {settings.master_key is not None}")
    click.echo(f"  Max Upload Size: {settings.max_upload_size}")
    click.echo(f"  Range Buffer Size: {settings.range_buffer_size}")
    click.echo(f"  Stream Chunk Size: {settings.stream_chunk_size}")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind")
@click.option("--port", default=8000, type=int, help="Port to listen on")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the gateway with uvicorn"""
    import uvicorn

    logger.info("Starting file gateway on %s:%s", host, port)
    uvicorn.run(
        "file_gateway.main:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":
    cli()
