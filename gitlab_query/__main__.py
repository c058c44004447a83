# Copyright 2023-present Kensho Technologies, LLC.
import sys

from .cli import main


sys.exit(main())
