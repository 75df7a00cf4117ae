# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Suite for FlowRunner

Unit tests run against temporary file storage with AsyncMock tools and
agents; no external services are required.
"""
