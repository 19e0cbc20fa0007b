"""CLI interface for retryflow"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from retryflow.application.executor import RetryExecutor
from retryflow.domain.classifier import ErrorCategory, Verdict, classify
from retryflow.domain.config.retry import RetryConfig
from retryflow.domain.models.attempt import Attempt
from retryflow.domain.models.failure import OperationError, describe_error
from retryflow.domain.models.result import format_retry_result
from retryflow.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from retryflow.infrastructure.http_client import request_with_retries

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _load_config(ctx: click.Context) -> ConfigManager:
    """Load configuration, turning configuration errors into CLI errors"""
    try:
        return ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)


def backoff_window(config: RetryConfig, attempt_number: int) -> tuple:
    """Minimum and maximum delay after a failed ``attempt_number``"""
    verdict = Verdict(ErrorCategory.UNKNOWN, True)
    low = RetryExecutor(config, rng=lambda: 0.0).compute_delay(attempt_number, verdict)
    high = RetryExecutor(config, rng=lambda: 1.0).compute_delay(attempt_number, verdict)
    return low, high


def _echo_attempt(attempt: Attempt) -> None:
    line = f"  #{attempt.attempt_number} {attempt.outcome.value}"
    if attempt.verdict is not None:
        line += f" [{attempt.verdict.category.value}]"
    if attempt.error is not None:
        line += f" {describe_error(attempt.error)}"
    if attempt.next_delay is not None:
        line += f" -> retry in {attempt.next_delay:.3f}s"
    click.echo(line)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .retryflow.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """retryflow - bounded, classified retries"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command(name="config")
@click.pass_context
def show_config(ctx):
    """Print the effective configuration as YAML."""
    config_manager = _load_config(ctx)
    click.echo(yaml.safe_dump(config_manager.config.model_dump(), sort_keys=False).rstrip())


@cli.command(name="classify")
@click.argument("message", type=str)
@click.option("--status", type=int, help="Status code carried by the error")
@click.option("--retry-after", type=float, help="Retry-After hint in seconds")
def classify_command(message: str, status: Optional[int], retry_after: Optional[float]):
    """Classify an error MESSAGE and print the verdict."""
    verdict = classify(OperationError(message, status=status, retry_after=retry_after))
    click.echo(f"category: {verdict.category.value}")
    click.echo(f"retryable: {'yes' if verdict.is_retryable else 'no'}")
    if verdict.retry_after is not None:
        click.echo(f"retry_after: {verdict.retry_after}")


@cli.command()
@click.option("--attempts", type=int, help="Number of attempts to show (default: max_attempts)")
@click.pass_context
def schedule(ctx, attempts: Optional[int]):
    """Print the backoff window before each retry."""
    retry_config = _load_config(ctx).get_retry_config()
    if attempts is None:
        attempts = retry_config.max_attempts
    if attempts < 1:
        _die("--attempts must be >= 1")

    click.echo(
        f"max_attempts={retry_config.max_attempts} base_delay={retry_config.base_delay}s "
        f"multiplier={retry_config.backoff_multiplier} jitter={retry_config.jitter_factor} "
        f"max_delay={retry_config.max_delay}s total_timeout={retry_config.total_timeout}s"
    )
    for attempt_number in range(1, attempts):
        low, high = backoff_window(retry_config, attempt_number)
        click.echo(f"before attempt {attempt_number + 1}: {low:.3f}s - {high:.3f}s")


@cli.command()
@click.argument("url", type=str)
@click.option("--method", default="GET", show_default=True, help="HTTP method")
@click.pass_context
def probe(ctx, url: str, method: str):
    """Request URL with retries and report every attempt."""
    verbose = ctx.obj.get("verbose", False)
    config_manager = _load_config(ctx)
    executor = RetryExecutor(config_manager.get_retry_config())

    try:
        result = asyncio.run(
            request_with_retries(
                method, url, executor=executor, http=config_manager.get_http_config()
            )
        )
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)

    click.echo(f"{result.label}:")
    for attempt in result.attempts:
        _echo_attempt(attempt)
    stats = result.stats()
    click.echo(
        f"attempts={stats.total_attempts} succeeded={stats.successful_attempts} "
        f"success_rate={stats.success_rate}%"
    )
    click.echo(format_retry_result(result))
    if not result.succeeded:
        sys.exit(1)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
