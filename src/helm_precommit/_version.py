# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
__version__ = "0.3.0"
