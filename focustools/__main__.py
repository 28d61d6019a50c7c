import sys

from focustools.main import main

sys.exit(main())
