#!/usr/bin/env python3
"""
Wrapper script to run the immortaldb-operator with Kopf.

Importing `immortaldb.app` registers the startup hooks and every handler,
then Kopf's CLI is launched with all standard arguments.

Usage:
    python run_operator.py [any kopf run arguments]

Examples:
    python run_operator.py --verbose --all-namespaces
    python run_operator.py -n my-namespace --log-format=json
"""

import sys

if __name__ == '__main__':
    import kopf.cli

    # Registers handlers via decorators
    import immortaldb.app  # noqa: F401

    # Behave as if the user called: kopf run <args>
    sys.argv.insert(1, 'run')

    sys.exit(kopf.cli.main(prog_name="kopf"))
