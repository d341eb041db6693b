import sys

from tiddlyconv.cli import main

sys.exit(main())
