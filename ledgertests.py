import io
import logging
import tempfile
import unittest
from contextlib import redirect_stdout
from datetime import date
from pathlib import Path
from unittest.mock import patch

from ledger.cli import ExpenseLedgerCLI
from ledger.errors import OutOfRangeError, PersistenceReadError, PersistenceWriteError, ValidationError
from ledger.logging_setup import configure_logging, get_logger
from ledger.logic import (
    apply_edit, build_expense, filter_by_category, month_label, monthly_summary,
    months_back, parse_amount, parse_date, total
)
from ledger.models import Expense
from ledger.storage import format_line, load_expenses, parse_line, save_expenses
from ledger.store import ExpenseStore


def sample_expenses():
    return [
        Expense("08-11-2025", "Travel", 40.0, "Taxi"),
        Expense("09-11-2025", "Food", 15.0, "Snack"),
        Expense("02-12-2025", "Bills", 60.25, "Electricity, December"),
    ]


class BrokenFile:
    """File stand-in that yields some lines and then fails like a lost disk."""

    def __init__(self, lines):
        self.lines = lines

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def __iter__(self):
        yield from self.lines
        raise OSError("Input/output error")


class TestExpenseStore(unittest.TestCase):
    def setUp(self):
        self.store = ExpenseStore(sample_expenses())

    def test_add_appends_at_end(self):
        """Test add keeps insertion order"""
        store = ExpenseStore()
        self.assertTrue(store.is_empty())
        store.add(Expense("01-01-2025", "Other", 1.0))
        store.add(Expense("02-01-2025", "Other", 2.0))
        self.assertFalse(store.is_empty())
        self.assertEqual([e.amount for e in store.list()], [1.0, 2.0])

    def test_list_is_read_only(self):
        listed = self.store.list()
        self.assertIsInstance(listed, tuple)
        with self.assertRaises(AttributeError):
            listed[0].amount = 0.0
        self.assertEqual(self.store.get(1).amount, 40.0)

    def test_remove_at_shifts_later_records(self):
        removed = self.store.remove_at(2)
        self.assertEqual(removed.category, "Food")
        self.assertEqual(len(self.store), 2)
        self.assertEqual(self.store.get(2).category, "Bills")

    def test_remove_at_out_of_range(self):
        """Test positions outside 1..size leave the store unchanged"""
        for position in (0, -1, 4):
            with self.assertRaises(OutOfRangeError) as ctx:
                self.store.remove_at(position)
            self.assertEqual(ctx.exception.position, position)
            self.assertEqual(ctx.exception.size, 3)
        self.assertEqual(self.store.list(), tuple(sample_expenses()))

    def test_update_at(self):
        updated = self.store.update_at(1, lambda e: apply_edit(e, amount="42"))
        self.assertEqual(updated.amount, 42.0)
        self.assertEqual(self.store.get(1), updated)
        with self.assertRaises(OutOfRangeError):
            self.store.update_at(5, lambda e: e)

    def test_replace_all(self):
        self.store.replace_all([])
        self.assertTrue(self.store.is_empty())


class TestParsing(unittest.TestCase):
    def test_parse_date(self):
        self.assertEqual(parse_date("08-11-2025"), date(2025, 11, 8))
        self.assertEqual(parse_date("29-02-2024"), date(2024, 2, 29))
        for bad in ("31-02-2025", "29-02-2025", "8-11-2025", "2025-11-08", "08/11/2025", "", " 08-11-2025"):
            self.assertIsNone(parse_date(bad), bad)

    def test_parse_amount(self):
        self.assertEqual(parse_amount("12.50"), 12.5)
        self.assertEqual(parse_amount("-3"), -3.0)
        self.assertIsNone(parse_amount("abc"))
        self.assertIsNone(parse_amount(""))

    def test_parse_amount_rejects_digit_separators(self):
        """Test "1_000" is not a number, while surrounding blanks are tolerated"""
        self.assertIsNone(parse_amount("1_000"))
        self.assertIsNone(parse_amount("1_000.50"))
        self.assertEqual(parse_amount(" 12.5 "), 12.5)
        with self.assertRaises(ValidationError):
            build_expense("08-11-2025", "Food", "1_000")

    def test_build_expense(self):
        expense = build_expense("08-11-2025", "Travel", "40", "Taxi")
        self.assertEqual(expense, Expense("08-11-2025", "Travel", 40.0, "Taxi"))
        with self.assertRaises(ValidationError):
            build_expense("31-02-2025", "Travel", "40")
        with self.assertRaises(ValidationError):
            build_expense("08-11-2025", "Travel", "forty")


class TestEdit(unittest.TestCase):
    def setUp(self):
        self.expense = Expense("08-11-2025", "Travel", 40.0, "Taxi")

    def test_empty_fields_keep_values(self):
        self.assertEqual(apply_edit(self.expense), self.expense)

    def test_invalid_date_does_not_abort_other_fields(self):
        edited = apply_edit(self.expense, t_date="31-02-2025", category="Food", amount="12", desc="Lunch")
        self.assertEqual(edited, Expense("08-11-2025", "Food", 12.0, "Lunch"))

    def test_invalid_amount_keeps_old_amount(self):
        edited = apply_edit(self.expense, t_date="10-11-2025", amount="twelve")
        self.assertEqual(edited.date, "10-11-2025")
        self.assertEqual(edited.amount, 40.0)


class TestAggregation(unittest.TestCase):
    def test_total(self):
        self.assertEqual(total([]), 0)
        self.assertAlmostEqual(total(sample_expenses()), 115.25)

    def test_add_then_total_and_filter(self):
        store = ExpenseStore()
        store.add(build_expense("08-11-2025", "Travel", "40", "Taxi"))
        store.add(build_expense("09-11-2025", "Food", "15", "Snack"))
        self.assertEqual(total(store), 55)

        result = filter_by_category(store, "food")
        self.assertTrue(result.found)
        self.assertEqual(len(result.matches), 1)
        self.assertEqual(result.subtotal, 15)

    def test_filter_is_case_insensitive(self):
        result = filter_by_category([Expense("01-01-2025", "food", 3.0)], "FOOD")
        self.assertTrue(result.found)

    def test_filter_compares_letters_one_to_one(self):
        """Test case folding does not expand letters such as the German sharp s"""
        expenses = [Expense("01-01-2025", "Straße", 3.0)]
        self.assertFalse(filter_by_category(expenses, "STRASSE").found)
        self.assertTrue(filter_by_category(expenses, "straße").found)

    def test_filter_found_distinguishes_zero_subtotal(self):
        expenses = [Expense("01-01-2025", "Food", 5.0), Expense("02-01-2025", "Food", -5.0)]
        self.assertTrue(filter_by_category(expenses, "Food").found)
        self.assertEqual(filter_by_category(expenses, "Food").subtotal, 0)
        missing = filter_by_category(expenses, "Travel")
        self.assertFalse(missing.found)
        self.assertEqual(missing.matches, ())

    def test_monthly_summary_first_seen_order(self):
        expenses = [
            Expense("05-03-2025", "Food", 10.0),
            Expense("15-01-2025", "Food", 4.0),
            Expense("20-03-2025", "Bills", 6.5),
        ]
        self.assertEqual(monthly_summary(expenses), [("March 2025", 16.5), ("January 2025", 4.0)])

    def test_monthly_summary_sorted_and_since(self):
        expenses = [
            Expense("05-03-2025", "Food", 10.0),
            Expense("15-01-2025", "Food", 4.0),
            Expense("01-12-2024", "Food", 1.0),
        ]
        self.assertEqual(
            [label for label, _ in monthly_summary(expenses, chronological=True)],
            ["December 2024", "January 2025", "March 2025"]
        )
        self.assertEqual(
            monthly_summary(expenses, since=date(2025, 1, 1)),
            [("March 2025", 10.0), ("January 2025", 4.0)]
        )

    def test_monthly_summary_skips_bad_dates(self):
        expenses = [Expense("not-a-date", "Food", 99.0), Expense("08-11-2025", "Food", 1.0)]
        self.assertEqual(monthly_summary(expenses), [("November 2025", 1.0)])

    def test_month_label(self):
        self.assertEqual(month_label(date(2025, 11, 8)), "November 2025")

    def test_months_back(self):
        self.assertEqual(months_back(1, today=date(2025, 3, 17)), date(2025, 3, 1))
        self.assertEqual(months_back(3, today=date(2025, 2, 10)), date(2024, 12, 1))
        with self.assertRaises(ValueError):
            months_back(0)


class TestStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "expenses.txt"

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_file_loads_empty(self):
        self.assertEqual(load_expenses(self.path), [])

    def test_save_and_load_round_trip(self):
        expenses = [
            Expense("08-11-2025", "Travel", 40.0, "Taxi"),
            Expense("09-11-2025", "Food", 0.1 + 0.2, ""),
            Expense("10-11-2025", "Other", -7.0, "Refund"),
        ]
        save_expenses(self.path, expenses)
        self.assertEqual(load_expenses(self.path), expenses)

    def test_file_format(self):
        save_expenses(self.path, sample_expenses()[:2])
        self.assertEqual(
            self.path.read_text(encoding="utf-8"),
            "08-11-2025,Travel,40.0,Taxi\n09-11-2025,Food,15.0,Snack\n"
        )

    def test_description_keeps_commas(self):
        save_expenses(self.path, sample_expenses())
        self.assertEqual(load_expenses(self.path)[2].description, "Electricity, December")

    def test_save_overwrites(self):
        save_expenses(self.path, sample_expenses())
        save_expenses(self.path, sample_expenses()[:1])
        self.assertEqual(len(load_expenses(self.path)), 1)

    def test_malformed_lines_are_skipped(self):
        self.path.write_text(
            "08-11-2025,Food,12.50,Lunch\nbad-line-no-commas\n01-01-2025,Travel,abc,Taxi\n",
            encoding="utf-8"
        )
        self.assertEqual(load_expenses(self.path), [Expense("08-11-2025", "Food", 12.5, "Lunch")])

    def test_parse_line(self):
        self.assertIsNone(parse_line("a,b,c"))
        self.assertEqual(parse_line("08-11-2025,Food,1,\n"), Expense("08-11-2025", "Food", 1.0, ""))
        self.assertEqual(format_line(Expense("08-11-2025", "Food", 1.0, "x")), "08-11-2025,Food,1.0,x\n")

    def test_read_error_keeps_partial_records(self):
        self.path.write_text("", encoding="utf-8")
        lines = ["08-11-2025,Food,12.5,Lunch\n", "09-11-2025,Food,3.0,Coffee\n"]
        with patch.object(Path, "open", return_value=BrokenFile(lines)):
            with self.assertRaises(PersistenceReadError) as ctx:
                load_expenses(self.path)
        self.assertEqual([e.description for e in ctx.exception.records], ["Lunch", "Coffee"])

    def test_undecodable_byte_keeps_every_line(self):
        self.path.write_bytes(
            b"08-11-2025,Food,12.5,Lunch\n09-11-2025,Food,3.0,Caf\xe9\n10-11-2025,Travel,40.0,Taxi\n"
        )
        expenses = load_expenses(self.path)
        self.assertEqual([e.amount for e in expenses], [12.5, 3.0, 40.0])
        self.assertTrue(expenses[1].description.startswith("Caf"))

    def test_write_error(self):
        with self.assertRaises(PersistenceWriteError):
            save_expenses(Path(self.tmp.name), sample_expenses())


class TestCLI(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "expenses.txt"

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, command, inputs=(), cli=None):
        out = io.StringIO()
        with redirect_stdout(out), patch("builtins.input", side_effect=list(inputs)):
            cli = cli or ExpenseLedgerCLI(self.path)
            cli.onecmd(command)
        return cli, out.getvalue()

    def seeded_cli(self):
        save_expenses(self.path, sample_expenses())
        with redirect_stdout(io.StringIO()):
            return ExpenseLedgerCLI(self.path)

    def test_startup_loads_file(self):
        cli = self.seeded_cli()
        self.assertEqual(len(cli.store), 3)

    def test_undecodable_byte_survives_load_and_save(self):
        """Test a stray Latin-1 byte does not cost any records on the next save"""
        self.path.write_bytes(
            b"08-11-2025,Food,12.5,Lunch\n09-11-2025,Food,3.0,Caf\xe9\n10-11-2025,Travel,40.0,Taxi\n"
        )
        cli, out = self.run_cli("add 11-11-2025 Bills 5 Water")
        self.assertNotIn("Error reading expense file.", out)
        saved = load_expenses(self.path)
        self.assertEqual([e.description[:3] for e in saved], ["Lun", "Caf", "Tax", "Wat"])
        self.assertEqual(total(saved), 60.5)

    def test_add_one_line_persists(self):
        cli, out = self.run_cli("add 08-11-2025 Travel 40 Airport taxi")
        self.assertIn("Expense added successfully!", out)
        self.assertEqual(load_expenses(self.path), [Expense("08-11-2025", "Travel", 40.0, "Airport taxi")])

    def test_add_one_line_invalid(self):
        cli, out = self.run_cli("add 31-02-2025 Travel 40")
        self.assertIn("Invalid input", out)
        self.assertTrue(cli.store.is_empty())
        self.assertFalse(self.path.exists())

    def test_add_prompts_until_valid(self):
        inputs = ["bad", "08-11-2025", "Food", "lots", "12.5", "Lunch"]
        cli, out = self.run_cli("add", inputs)
        self.assertIn("Invalid date format", out)
        self.assertIn("Invalid amount", out)
        self.assertEqual(cli.store.list(), (Expense("08-11-2025", "Food", 12.5, "Lunch"),))
        self.assertEqual(len(load_expenses(self.path)), 1)

    def test_list_and_total(self):
        cli = self.seeded_cli()
        _, out = self.run_cli("list", cli=cli)
        self.assertIn("1. 08-11-2025 | Travel | 40.0 | Taxi", out)
        self.assertIn("3. 02-12-2025 | Bills | 60.25 | Electricity, December", out)
        _, out = self.run_cli("total", cli=cli)
        self.assertIn("Total Expenses Recorded: 115.25", out)

    def test_category(self):
        cli = self.seeded_cli()
        _, out = self.run_cli("category FOOD", cli=cli)
        self.assertIn("09-11-2025 | Food | 15.0 | Snack", out)
        self.assertIn("Subtotal (FOOD): 15.0", out)
        _, out = self.run_cli("category", ["Shopping"], cli=cli)
        self.assertIn("No expenses found in this category.", out)

    def test_summary(self):
        cli = self.seeded_cli()
        _, out = self.run_cli("summary", cli=cli)
        self.assertIn("November 2025 : 55.0", out)
        self.assertIn("December 2025 : 60.25", out)
        self.assertLess(out.index("November 2025"), out.index("December 2025"))
        _, out = self.run_cli("summary --bogus", cli=cli)
        self.assertIn("Invalid input", out)

    def test_summary_sorted(self):
        cli = self.seeded_cli()
        self.run_cli("add 01-01-2020 Other 1 Old receipt", cli=cli)
        _, out = self.run_cli("summary", cli=cli)
        self.assertLess(out.index("December 2025"), out.index("January 2020"))
        _, out = self.run_cli("summary --sorted", cli=cli)
        self.assertLess(out.index("January 2020 : 1.0"), out.index("November 2025 : 55.0"))
        self.assertLess(out.index("November 2025"), out.index("December 2025"))

    def test_summary_last_months(self):
        today = date.today()
        cli, _ = self.run_cli(f"add {today.strftime('%d-%m-%Y')} Food 7 Today")
        self.run_cli("add 15-01-2000 Food 3 Long ago", cli=cli)
        _, out = self.run_cli("summary --last 1", cli=cli)
        self.assertIn(f"{month_label(today)} : 7.0", out)
        self.assertNotIn("January 2000", out)
        _, out = self.run_cli("summary --last 0", cli=cli)
        self.assertIn("Invalid input", out)
        _, out = self.run_cli("summary --last", cli=cli)
        self.assertIn("Invalid input", out)

    def test_delete(self):
        cli = self.seeded_cli()
        _, out = self.run_cli("delete 1", cli=cli)
        self.assertIn("Deleted Expense: 08-11-2025 | Travel | 40.0 | Taxi", out)
        self.assertEqual(len(load_expenses(self.path)), 2)

        _, out = self.run_cli("delete 9", cli=cli)
        self.assertIn("Invalid expense number.", out)
        self.assertEqual(len(cli.store), 2)

    def test_delete_empty(self):
        _, out = self.run_cli("delete 1")
        self.assertIn("No expenses to delete.", out)

    def test_edit_keeps_invalid_date_and_applies_rest(self):
        cli = self.seeded_cli()
        _, out = self.run_cli("edit 2", ["31-02-2025", "", "18", "Big snack"], cli=cli)
        self.assertIn("Editing Expense: 09-11-2025 | Food | 15.0 | Snack", out)
        self.assertIn("Invalid date. Keeping old value.", out)
        self.assertIn("Expense updated successfully!", out)
        expected = Expense("09-11-2025", "Food", 18.0, "Big snack")
        self.assertEqual(cli.store.get(2), expected)
        self.assertEqual(load_expenses(self.path)[1], expected)

    def test_edit_prompts_for_position(self):
        cli = self.seeded_cli()
        _, out = self.run_cli("edit", ["7"], cli=cli)
        self.assertIn("Invalid expense number.", out)

    def test_write_failure_keeps_memory(self):
        cli = self.seeded_cli()
        cli.path = Path(self.tmp.name)
        _, out = self.run_cli("delete 1", cli=cli)
        self.assertIn("Error writing expense file.", out)
        self.assertEqual(len(cli.store), 2)

    def test_read_failure_reported(self):
        out = io.StringIO()
        with redirect_stdout(out):
            cli = ExpenseLedgerCLI(Path(self.tmp.name))
        self.assertIn("Error reading expense file.", out.getvalue())
        self.assertTrue(cli.store.is_empty())

    def test_exit(self):
        out = io.StringIO()
        with redirect_stdout(out):
            cli = ExpenseLedgerCLI(self.path)
            self.assertTrue(cli.onecmd("exit"))


class TestLogging(unittest.TestCase):
    def test_configure_logging_attaches_one_handler(self):
        logger = logging.getLogger("ledger")
        saved = list(logger.handlers), logger.level, logger.propagate
        stream = io.StringIO()
        try:
            with patch("ledger.logging_setup._CONFIGURED", False):
                configure_logging(logging.DEBUG, stream=stream)
                configure_logging(logging.DEBUG, stream=stream)
                stream_handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
                self.assertEqual(len(stream_handlers), 1)
                get_logger("ledger.storage").debug("Loaded %d expenses", 3)
            self.assertIn("DEBUG ledger.storage: Loaded 3 expenses", stream.getvalue())
        finally:
            logger.handlers[:], logger.level, logger.propagate = saved[0], saved[1], saved[2]


if __name__ == "__main__":
    unittest.main()
