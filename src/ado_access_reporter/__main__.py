"""This module serves as the entry point for the ado_access_reporter application.

It imports the main function from the ado_access_reporter.cli module and
executes it when the script is run as the main module.
"""

from ado_access_reporter.cli import main

if __name__ == "__main__":
    main()
