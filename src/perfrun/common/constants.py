# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

MILLIS_PER_SECOND = 1000

DEFAULT_HOST = "http://localhost:5000/api"
DEFAULT_TOKEN = ""
DEFAULT_VUS = 10
DEFAULT_DURATION = "60s"
DEFAULT_PROFILE_NAME = "LIGHT"

SUITE_TEST_NAME = "all-tests"
SUITE_RESULTS_LABEL = "all"

RESOLVABLE_ENVIRONMENTS = ("PROD", "DEV")
TOKEN_ROLES = ("USER", "ADMIN")

# Number of leading characters of a secret that may appear in logs.
SECRET_PREVIEW_CHARS = 6
