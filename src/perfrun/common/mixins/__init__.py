# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from perfrun.common.mixins.perfrun_logger_mixin import PerfRunLoggerMixin

__all__ = ["PerfRunLoggerMixin"]
