import sys

from textchan.cli import main

sys.exit(main())
