import sys

from vault_migrator.cli import main

sys.exit(main())
