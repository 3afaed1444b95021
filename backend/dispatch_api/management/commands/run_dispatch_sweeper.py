from django.core.management.base import BaseCommand

from dispatch.dispatcher import Dispatcher, DispatchService
from dispatch.policy import policy_from_env
from dispatch.sweeper import TimeoutSweeper
from dispatch_api.store import DjangoTaskStore


class Command(BaseCommand):
    help = "Run the offer-rotation sweeper (the single writer for dispatch timeouts)."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Run a single sweep cycle and exit.")
        parser.add_argument("--cycles", type=int, default=None, help="Stop after this many cycles.")

    def handle(self, *args, **options):
        policy = policy_from_env()
        sweeper = TimeoutSweeper(DispatchService(DjangoTaskStore(), Dispatcher(policy)), policy)

        if options["once"]:
            stats = sweeper.run_cycle()
            self.stdout.write(
                f"{stats.total} task(s): {stats.offered} offered, {stats.reassigned} reassigned, "
                f"{stats.cleared} cleared, {stats.conflicts} conflicts, {stats.errors} errors"
            )
            return

        self.stdout.write(f"Sweeping every {policy.sweep_interval_seconds}s (Ctrl+C to stop)")
        sweeper.run_forever(max_cycles=options["cycles"])
