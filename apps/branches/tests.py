from io import StringIO

from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import TestCase, override_settings

from apps.branches.models import Branch, BranchOrderCounter, BranchType
from apps.branches.services import branch_for_user, branch_prefix, next_order_id
from apps.common.exceptions import NotFound


class BranchPrefixTests(TestCase):
    def test_prefixes(self):
        cases = {
            "Main Branch": "MB",
            "kandy city centre mall": "KCC",
            "Colombo": "COL",
            "Go": "GO",
            "x": "X0",
            "   ": "GN",
            "": "GN",
        }
        for name, expected in cases.items():
            with self.subTest(name=name):
                self.assertEqual(branch_prefix(name), expected)


class OrderCounterTests(TestCase):
    def test_sequence_is_per_branch(self):
        colombo = Branch.objects.create(name="Colombo")
        galle = Branch.objects.create(name="Galle")

        ids = [next_order_id(colombo), next_order_id(colombo), next_order_id(galle)]

        self.assertEqual(ids, ["COL-0001", "COL-0002", "GAL-0001"])
        counter = BranchOrderCounter.objects.get(branch=colombo)
        self.assertEqual(counter.last_number, 2)
        self.assertEqual(counter.last_order_id, "COL-0002")

    @override_settings(ORDER_NUMBER_PADDING=6)
    def test_padding_is_configurable(self):
        branch = Branch.objects.create(name="Colombo")

        self.assertEqual(next_order_id(branch), "COL-000001")


class BranchForUserTests(TestCase):
    def test_inactive_or_missing_branch_is_not_found(self):
        class Caller:
            branch = None

        with self.assertRaises(NotFound):
            branch_for_user(Caller())

        Caller.branch = Branch.objects.create(name="Closed", is_active=False)
        with self.assertRaises(NotFound):
            branch_for_user(Caller())


class SeedRolesCommandTests(TestCase):
    def test_creates_groups_and_main_branch_once(self):
        call_command("seed_roles", main_branch="Main Branch", stdout=StringIO())
        call_command("seed_roles", main_branch="Main Branch", stdout=StringIO())

        self.assertEqual(set(Group.objects.values_list("name", flat=True)), {"ADMIN", "MANAGER", "CASHIER"})
        self.assertEqual(Branch.objects.get().branch_type, BranchType.MAIN)

    def test_second_main_branch_is_skipped(self):
        Branch.objects.create(name="Colombo", branch_type=BranchType.MAIN)
        out = StringIO()

        call_command("seed_roles", main_branch="Kandy", stdout=out)

        self.assertFalse(Branch.objects.filter(name="Kandy").exists())
        self.assertIn("skipping Kandy", out.getvalue())
