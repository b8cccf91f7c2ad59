import cmd
from functools import partial
from pathlib import Path
from typing import Optional

from ledger.errors import OutOfRangeError, PersistenceReadError, PersistenceWriteError, ValidationError
from ledger.logic import (
    apply_edit,
    build_expense,
    filter_by_category,
    monthly_summary,
    months_back,
    parse_amount,
    parse_date,
    total
)
from ledger.models import Expense, SUGGESTED_CATEGORIES
from ledger.storage import EXPENSES_FILE, load_expenses, save_expenses
from ledger.store import ExpenseStore


CATEGORY_HINT = "/".join(SUGGESTED_CATEGORIES)


class ExpenseLedgerCLI(cmd.Cmd):
    prompt = "(ledger) "

    def __init__(self, path=EXPENSES_FILE):
        super().__init__()
        self.intro = "Welcome to Personal Expense Tracker. Type 'help' for commands."
        self.path = Path(path)
        self.store = ExpenseStore()
        self._load()

    # ===== RECORD COMMANDS =====
    def do_add(self, arg):
        """Add an expense: add [DD-MM-YYYY <category> <amount> [description]]

        Without arguments, prompts for each field."""
        if arg.strip():
            try:
                expense = self._parse_add_args(arg)
            except ValidationError as e:
                print(f"Invalid input: {e}")
                return
        else:
            expense = self._prompt_expense()

        self.store.add(expense)
        self._commit()
        print("Expense added successfully!")

    def do_list(self, arg):
        """List all expenses with their numbers"""
        if self.store.is_empty():
            print("No expenses found.")
            return

        print("\nAll Recorded Expenses:")
        print("-" * 40)
        for i, expense in enumerate(self.store.list(), 1):
            print(f"{i}. {expense}")

    def do_delete(self, arg):
        """Delete an expense by number: delete [n]"""
        if self.store.is_empty():
            print("No expenses to delete.")
            return

        position = self._read_position(arg, "delete")
        if position is None:
            return

        try:
            removed = self.store.remove_at(position)
        except OutOfRangeError:
            print("Invalid expense number.")
            return

        self._commit()
        print(f"Deleted Expense: {removed}")

    def do_edit(self, arg):
        """Edit an expense by number: edit [n]  (press Enter at a prompt to keep a field)"""
        if self.store.is_empty():
            print("No expenses to edit.")
            return

        position = self._read_position(arg, "edit")
        if position is None:
            return

        try:
            current = self.store.get(position)
        except OutOfRangeError:
            print("Invalid expense number.")
            return

        print(f"\nEditing Expense: {current}")

        new_date = input(f"Enter new date (press Enter to keep '{current.date}'): ")
        if new_date and parse_date(new_date) is None:
            print("Invalid date. Keeping old value.")

        new_cat = input(f"Enter new category (press Enter to keep '{current.category}'): ")

        new_amount = input(f"Enter new amount (press Enter to keep '{current.amount}'): ")
        if new_amount and parse_amount(new_amount) is None:
            print("Invalid amount. Keeping old value.")

        new_desc = input(f"Enter new description (press Enter to keep '{current.description}'): ")

        self.store.update_at(
            position,
            partial(apply_edit, t_date=new_date, category=new_cat, amount=new_amount, desc=new_desc)
        )
        self._commit()
        print("Expense updated successfully!")

    # ===== REPORTS =====
    def do_total(self, arg):
        """Show the total of all expenses"""
        print(f"\nTotal Expenses Recorded: {total(self.store)}")

    def do_category(self, arg):
        """Show expenses in one category (case-insensitive): category [name]"""
        name = arg.strip() or input(f"Enter category to filter ({CATEGORY_HINT}): ")
        result = filter_by_category(self.store, name)

        print(f"\nExpenses in category: {name}")
        print("-" * 40)
        if not result.found:
            print("No expenses found in this category.")
            return
        for expense in result.matches:
            print(expense)
        print(f"Subtotal ({name}): {result.subtotal}")

    def do_summary(self, arg):
        """
        Month-wise expense summary:
        summary [--last N] [--sorted]

            --last N    Only the current month and the N-1 months before it
            --sorted    Order months chronologically instead of first-seen
        """
        if self.store.is_empty():
            print("No expenses found.")
            return

        try:
            args = self._parse_summary_args(arg)
        except ValueError as e:
            print(f"Invalid input: {e}")
            return

        rows = monthly_summary(self.store, since=args['since'], chronological=args['sorted'])

        print("\nMonth-Wise Expense Summary:")
        print("-" * 40)
        for label, subtotal in rows:
            print(f"{label} : {subtotal}")

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        print("Thank you for using Expense Tracker!")
        return True

    do_quit = do_exit

    def do_EOF(self, arg):
        print()
        return self.do_exit(arg)

    def emptyline(self):
        return False

    # ===== HELPERS =====
    def _load(self):
        try:
            self.store.replace_all(load_expenses(self.path))
        except PersistenceReadError as e:
            self.store.replace_all(e.records)
            print("Error reading expense file.")

    def _commit(self) -> bool:
        """Rewrite the backing file from the store; memory is kept either way."""
        try:
            save_expenses(self.path, self.store.list())
        except PersistenceWriteError:
            print("Error writing expense file.")
            return False
        return True

    @staticmethod
    def _parse_add_args(arg) -> Expense:
        args = arg.split()
        if len(args) < 3:
            raise ValidationError("Missing required arguments (date, category and amount)")
        return build_expense(args[0], args[1], args[2], ' '.join(args[3:]))

    @staticmethod
    def _prompt_expense() -> Expense:
        while True:
            t_date = input("Enter date (DD-MM-YYYY): ")
            if parse_date(t_date) is not None:
                break
            print("Invalid date format. Please enter again (e.g., 08-11-2025).")

        category = input(f"Enter category ({CATEGORY_HINT}): ")

        while True:
            amount = parse_amount(input("Enter amount: "))
            if amount is not None:
                break
            print("Invalid amount. Please enter a number.")

        desc = input("Enter short description: ")
        return Expense(date=t_date, category=category, amount=amount, description=desc)

    def _read_position(self, arg, action) -> Optional[int]:
        text = arg.strip()
        if not text:
            self.do_list("")
            text = input(f"\nEnter the expense number to {action}: ")
        try:
            return int(text)
        except ValueError:
            print("Invalid expense number.")
            return None

    @staticmethod
    def _parse_summary_args(arg):
        args = arg.split()
        result = {
            'since': None,
            'sorted': False
        }

        i = 0
        while i < len(args):
            if args[i] == '--last':
                if i+1 >= len(args):
                    raise ValueError("Missing month count after --last")
                result['since'] = months_back(int(args[i+1]))
                i += 1
            elif args[i] == '--sorted':
                result['sorted'] = True
            else:
                raise ValueError(f"Unknown flag: {args[i]}")
            i += 1

        return result


if __name__ == "__main__":
    ExpenseLedgerCLI().cmdloop()
