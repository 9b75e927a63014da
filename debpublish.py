#!/usr/bin/env python3
"""
debpublish - Build, sign and publish Debian archives

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import sys

from debarchive.cli import main


if __name__ == '__main__':
    sys.exit(main())
