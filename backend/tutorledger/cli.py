# Overview: Flask CLI command groups for database bootstrap and reconciliation.

# backend/tutorledger/cli.py
# Commands Legend (run from the repository root):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`.
# - Set FLASK_APP to tutorledger (PowerShell: $env:FLASK_APP="tutorledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent). Use `flask db upgrade` once migrations are in play.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Students:
# - python -m flask students list [--query ol]
#   List students with balance and completed lesson count.
# - python -m flask students create "Olena" --balance 4
# - python -m flask students adjust 1 8
#   Apply a balance delta (positive = top-up, settles unpaid lessons, generates schedule).
# - python -m flask students delete 1 --yes
#
# Reconciliation:
# - python -m flask ledger sweep
#   Complete every lesson that has ended. Safe to run repeatedly.
# - python -m flask ledger expand 1
#   Generate lessons from student 1's weekly schedule.
# - python -m flask ledger expand-all
# - python -m flask ledger startup
#   Sweep, then expand every student's schedule (what the app does on launch).
# - python -m flask ledger worker
#   Run the periodic sweep and per-lesson completion timers until Ctrl+C.

import time

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .ledger import get_engine
from .services.timer_service import LessonTimers, SweepWorker, ThreadingTimerBackend


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('students')
def students_group():
    """Student roster and balance commands."""


@students_group.command('list')
@click.option('--query', 'query', default=None, help='Case-insensitive name filter')
@with_appcontext
def list_students(query):
    """List students with balance and completed lesson count."""
    students = get_engine().search_students(query)

    if not students:
        click.echo("No students found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Balance':<10} {'Completed'}")
    click.echo("="*60)

    for student in students:
        click.echo(f"{student.id:<5} {student.name:<30} {student.balance:<10} {student.completed_lessons_count}")

    click.echo("="*60 + "\n")


@students_group.command('create')
@click.argument('name')
@click.option('--balance', type=int, default=0, help='Initial prepaid lesson balance')
@with_appcontext
def create_student_cli(name, balance):
    """Create a student."""
    try:
        student = get_engine().create_student(name, balance)
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created student: {student.name} (ID: {student.id}, Balance: {student.balance})")


@students_group.command('adjust')
@click.argument('student_id', type=int)
@click.argument('delta', type=int)
@with_appcontext
def adjust_balance_cli(student_id, delta):
    """Apply a balance delta to a student."""
    try:
        student = get_engine().adjust_balance(student_id, delta)
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Student {student.id} balance is now {student.balance}")


@students_group.command('delete')
@click.argument('student_id', type=int)
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete_student_cli(student_id, yes):
    """Delete a student with all lessons and schedule slots."""
    if not yes:
        click.confirm(f"WARN Delete student {student_id} and all their lessons?", abort=True)
    try:
        get_engine().delete_student(student_id)
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Deleted student {student_id}")


@click.group('ledger')
def ledger_group():
    """Reconciliation commands."""


@ledger_group.command('sweep')
@with_appcontext
def sweep():
    """Complete every lesson that has ended."""
    try:
        completed = get_engine().run_completion_sweep()
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Completed {completed} lesson(s)")


@ledger_group.command('expand')
@click.argument('student_id', type=int)
@with_appcontext
def expand(student_id):
    """Generate lessons from a student's weekly schedule."""
    try:
        created = get_engine().expand_schedule(student_id)
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Generated {created} lesson(s) for student {student_id}")


@ledger_group.command('expand-all')
@with_appcontext
def expand_all():
    """Generate lessons from every student's weekly schedule."""
    try:
        created = get_engine().expand_all_schedules()
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Generated {created} lesson(s)")


@ledger_group.command('startup')
@with_appcontext
def startup():
    """Sweep, then expand every schedule."""
    try:
        result = get_engine().reconcile_on_startup()
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Completed {result['completed']} lesson(s), generated {result['generated']}")


@ledger_group.command('worker')
@click.option('--interval', type=int, default=None, help='Sweep interval in seconds')
@with_appcontext
def worker(interval):
    """Run the periodic sweep and per-lesson timers until interrupted."""
    app = current_app._get_current_object()
    engine = get_engine()
    interval = interval or app.config["SWEEP_INTERVAL_SECONDS"]

    try:
        result = engine.reconcile_on_startup()
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"START Startup: {result['completed']} completed, {result['generated']} generated")

    timers = LessonTimers(engine, ThreadingTimerBackend(engine.clock), context_factory=app.app_context)
    sweeper = SweepWorker(engine, interval, context_factory=app.app_context)
    armed = timers.start()
    sweeper.start()
    click.echo(f"START Worker running: {armed} lesson timer(s), sweep every {interval}s (Ctrl+C to stop)")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nSTOP Shutting down worker...")
    finally:
        sweeper.stop(timeout=5)
        timers.stop()


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(students_group)
    app.cli.add_command(ledger_group)
