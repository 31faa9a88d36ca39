"""
Flask CLI commands for inventory maintenance.

Commands:
- flask init-db: Create database tables
- flask reconcile-inventory: Align availability flags with live stock
- flask repair-reservations: Trim abandoned-cart reservations over stock
- flask inventory-worker: Consume queued inventory jobs
"""

import click
from marketplace.database import get_session, create_schema
from marketplace.services.reconciliation_service import InventoryScope, scope_for_admin, reconcile_product_availability
from marketplace.services.reservation_repair_service import repair_over_reserved_cart, repair_over_reserved_carts
from marketplace.services.job_queue import get_job_queue


def _build_scope(seller_id, category_ids, admin_id):
    scope = scope_for_admin(get_session(), admin_id) if admin_id is not None else InventoryScope()
    scope.seller_id = seller_id
    if category_ids:
        scope.category_ids = list(category_ids) if scope.category_ids is None else [
            c for c in scope.category_ids if c in category_ids
        ]
    return scope


def _echo_summary(title, summary: dict):
    click.echo(click.style(f'\n{title}', fg='green', bold=True))
    for key, value in summary.items():
        click.echo(f'   {key}: {value}')


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_schema()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('reconcile-inventory')
    @click.option('--seller-id', type=int, default=None, help='Only this seller\'s products')
    @click.option('--category-id', 'category_ids', type=int, multiple=True, help='Restrict to category (repeatable)')
    @click.option('--admin-id', type=int, default=None, help='Restrict to an admin\'s assigned categories')
    @click.option('--page-size', type=int, default=None, help='Products per page')
    def reconcile_inventory(seller_id, category_ids, admin_id, page_size):
        """Correct availability flags that disagree with live stock."""
        scope = _build_scope(seller_id, category_ids, admin_id)
        summary = reconcile_product_availability(get_session(), scope, page_size=page_size)
        _echo_summary('Reconciliation complete', summary.to_dict())

    @app.cli.command('repair-reservations')
    @click.option('--product-id', type=int, default=None, help='Repair a single product')
    @click.option('--seller-id', type=int, default=None, help='Only this seller\'s products')
    @click.option('--page-size', type=int, default=None, help='Products per page')
    def repair_reservations(product_id, seller_id, page_size):
        """Cap or remove abandoned-cart reservations that exceed stock."""
        if product_id is not None:
            summary = repair_over_reserved_cart(get_session(), product_id)
        else:
            summary = repair_over_reserved_carts(get_session(), InventoryScope(seller_id=seller_id), page_size=page_size)
        _echo_summary('Reservation repair complete', summary.to_dict())

    @app.cli.command('inventory-worker')
    @click.option('--max-jobs', type=int, default=None, help='Stop after this many jobs')
    def inventory_worker(max_jobs):
        """Process queued reconciliation and repair jobs."""
        queue = get_job_queue()
        if not queue.is_async:
            click.echo(click.style('Job queue is not connected to Redis; nothing to consume.', fg='red'))
            raise SystemExit(1)
        processed = queue.work(max_jobs=max_jobs)
        click.echo(f'Processed {processed} job(s)')
