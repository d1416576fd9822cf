"""Print the expiry alert report for batches still in stock."""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from inventory.selectors import list_expiry_alerts
from locations.models import Warehouse


class Command(BaseCommand):
    help = "List batches that are expired or expire within the look-ahead window."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=settings.INVENTORY_DEFAULT_LOOKAHEAD_DAYS,
            help="Look-ahead window in days (default: INVENTORY_DEFAULT_LOOKAHEAD_DAYS)",
        )
        parser.add_argument("--warehouse", type=int, default=None, help="Only report this warehouse id")

    def handle(self, *args, **options):
        days = options["days"]
        warehouse_id = options["warehouse"]
        if days < 0:
            raise CommandError("--days must not be negative")
        if warehouse_id and not Warehouse.objects.filter(id=warehouse_id).exists():
            raise CommandError(f"Warehouse {warehouse_id} does not exist")

        alerts = list_expiry_alerts(look_ahead_days=days, warehouse_id=warehouse_id)
        for alert in alerts:
            line = (
                f"{alert['status']:<14} {alert['expiry_date']} ({alert['days_until_expiry']:>4}d) "
                f"{alert['batch_code']:<16} {alert['product_name']} x{alert['quantity']} @ {alert['warehouse_name']}"
            )
            if alert["status"] == "expired":
                self.stdout.write(self.style.ERROR(line))
            elif alert["status"] == "expiring_soon":
                self.stdout.write(self.style.WARNING(line))
            else:
                self.stdout.write(line)
        self.stdout.write(self.style.SUCCESS(f"Expiry alerts within {days} days: {len(alerts)}"))
