from django.core.management.base import BaseCommand, CommandError
from fulfillment.selectors import overcommitted_source_lines


class Command(BaseCommand):
    help = "Recompute committed quantities per source line and report any line committed beyond its ordered quantity"

    def handle(self, *args, **options):
        violations = overcommitted_source_lines()
        for row in violations:
            self.stderr.write(
                f"source_line={row['source_line_id']} sku={row['sku']} "
                f"ordered={row['ordered']:.3f} committed={row['committed']:.3f}"
            )
        if violations:
            raise CommandError(f"{len(violations)} overcommitted source line(s).", returncode=1)
        self.stdout.write(self.style.SUCCESS("No overcommitted source lines."))
