"""
CLI tool for taxledger.
Runs a CSV trade file through the accounting engine and prints the reports.
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from .services.accounting import CSVExportService, TransactionRecorderService
from .services.config import ConfigService, ConfigValidationException
from .services.ledger_invariants import AccountingError
from .services.logging_service import TransactionLogService, configure_logging
from .services.reporting_service import ReportingService
from .services.trade_feed import FeedParseError, TradeFeedService

logger = logging.getLogger(__name__)


def _load_config(config_path):
    config = ConfigService(config_path)
    try:
        config.load_and_validate()
    except ConfigValidationException as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return config


@click.group()
@click.option('--debug/--no-debug', default=False, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """TaxLedger CLI - FIFO capital gains and fiscal year reports."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug


@cli.command()
@click.argument('trades_csv', type=click.Path(exists=True, dir_okay=False, path_type=Path), required=False)
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Path to config.yaml')
@click.option('--log-dir', type=click.Path(file_okay=False, path_type=Path), help='Append CSV audit logs here')
@click.option('--export-dir', type=click.Path(file_okay=False, path_type=Path), help='Write CSV exports here')
@click.option('--fiscal-year', type=int, help='Only export realized gains for this fiscal year')
@click.option('--holdings/--no-holdings', default=True, help='Show lots still open')
@click.pass_context
def report(ctx, trades_csv, config_path, log_dir, export_dir, fiscal_year, holdings):
    """Process TRADES_CSV and print transactions and fiscal year totals."""
    config = _load_config(config_path)
    level = 'DEBUG' if ctx.obj.get('debug') else config.get('logging.level', 'WARNING')
    configure_logging(level, config.get('logging.format'))

    if trades_csv is None:
        feed_path = config.get('feed.path')
        if not feed_path:
            click.echo("Error: TRADES_CSV required (or set feed.path in config)", err=True)
            sys.exit(1)
        trades_csv = Path(feed_path)

    transaction_log = TransactionLogService(log_dir) if log_dir else None
    recorder = TransactionRecorderService.from_config(config, transaction_log=transaction_log)
    feed = TradeFeedService.from_config(config)

    try:
        f = open(trades_csv, 'r', newline='', encoding='utf-8-sig')
    except OSError as e:
        click.echo(f"Error reading {trades_csv}: {e}", err=True)
        sys.exit(1)

    with f:
        try:
            for event in feed.iter_events(f):
                try:
                    recorder.record(event)
                except AccountingError as e:
                    click.echo(f"Error processing {event!r}: {e}", err=True)
                    sys.exit(1)
        except FeedParseError as e:
            click.echo(f"Error reading {trades_csv}: {e}", err=True)
            sys.exit(1)

    reporting = ReportingService.from_config(recorder, config)
    console = Console()
    console.print(reporting.render_transactions())
    console.print(reporting.render_fiscal_years())
    if holdings:
        console.print(reporting.render_holdings())

    if export_dir:
        exporter = CSVExportService(recorder)
        exporter.export_transactions_csv(export_dir / 'transactions.csv')
        exporter.export_fiscal_summary_csv(export_dir / 'fiscal_years.csv')
        years = [fiscal_year] if fiscal_year else list(recorder.fiscal_year_profits)
        for fy in years:
            exporter.export_fiscal_csv(fy, export_dir / f'fiscal_{fy}.csv')
        click.echo(f"Exports written to {export_dir}")


@cli.command('validate-config')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Path to config.yaml')
def validate_config(config_path):
    """Validate a configuration file."""
    config = _load_config(config_path)
    click.echo(f"Configuration OK: {config.config_path}")


@cli.command()
@click.option('--host', default='127.0.0.1', help='Bind address')
@click.option('--port', default=8000, type=int, help='Bind port')
def serve(host, port):
    """Run the report API."""
    import uvicorn

    uvicorn.run("taxledger.main:app", host=host, port=port)


if __name__ == '__main__':
    cli()
