from ledger.cli import ExpenseLedgerCLI
from ledger.logging_setup import configure_logging


def main():
    configure_logging()
    ExpenseLedgerCLI().cmdloop()


if __name__ == "__main__":
    main()
