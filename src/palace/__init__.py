# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Palace: personal web archive with a cookie/bearer authentication gate."""

__version__ = "0.1.0"
