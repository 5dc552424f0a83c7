# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import sys

from asmreflect.cli import main

sys.exit(main())
