from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.accounts.models import UserRole
from apps.branches.models import Branch, BranchType


class Command(BaseCommand):
    help = "Create the role groups and, optionally, the main branch"

    def add_arguments(self, parser):
        parser.add_argument("--main-branch", default="", help="Name of the main branch to create if missing")

    def handle(self, *args, **options):
        for role in UserRole.values:
            _, created = Group.objects.get_or_create(name=role)
            self.stdout.write(self.style.SUCCESS(f"group {role}: {'created' if created else 'exists'}"))

        name = options["main_branch"].strip()
        if not name:
            return
        main = Branch.objects.filter(branch_type=BranchType.MAIN).first()
        if main is not None and main.name != name:
            self.stdout.write(self.style.WARNING(f"main branch already set to {main.name}; skipping {name}"))
            return
        branch, created = Branch.objects.get_or_create(name=name, defaults={"branch_type": BranchType.MAIN})
        if branch.branch_type != BranchType.MAIN:
            branch.branch_type = BranchType.MAIN
            branch.save(update_fields=["branch_type", "updated_at"])
        self.stdout.write(self.style.SUCCESS(f"branch {branch.name}: {'created' if created else 'exists'}"))
