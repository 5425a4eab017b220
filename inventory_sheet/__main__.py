import sys

from inventory_sheet.main import run

sys.exit(run())
